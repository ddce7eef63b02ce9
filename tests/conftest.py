import os
import tempfile
from types import SimpleNamespace

import pytest

# Must be set before app.core.config is imported anywhere
_DB_DIR = tempfile.mkdtemp(prefix="intellistudy-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["PRELOAD_MODELS"] = "false"
os.environ["DEBUG"] = "false"

from focus_model.focus_core import FaceLandmarks  # noqa: E402

LANDMARK_COUNT = 478


def make_landmarks(nose_x=0.5, nose_y=0.44, chin_y=0.8, top_y=0.2,
                   left_ear_x=0.4, right_ear_x=0.6):
    """
    Face-mesh-shaped landmark list. Defaults give pitch 0 and yaw 0:
    nose centred between the ears, nose-to-chin = 0.6 of face height.
    """
    points = [SimpleNamespace(x=0.5, y=0.5) for _ in range(LANDMARK_COUNT)]
    points[FaceLandmarks.NOSE_TIP] = SimpleNamespace(x=nose_x, y=nose_y)
    points[FaceLandmarks.CHIN] = SimpleNamespace(x=0.5, y=chin_y)
    points[FaceLandmarks.TOP_HEAD] = SimpleNamespace(x=0.5, y=top_y)
    points[FaceLandmarks.LEFT_EAR] = SimpleNamespace(x=left_ear_x, y=0.45)
    points[FaceLandmarks.RIGHT_EAR] = SimpleNamespace(x=right_ear_x, y=0.45)
    return points


@pytest.fixture
def landmarks():
    return make_landmarks


@pytest.fixture
def straight_face():
    return make_landmarks()


@pytest.fixture
def head_down_face():
    # nose-to-chin 0.2 of 0.6 -> ratio 1/3 -> pitch 40
    return make_landmarks(nose_y=0.6)


@pytest.fixture
def turned_face():
    # nose 0.2 right of the ear midpoint -> yaw 40
    return make_landmarks(nose_x=0.7)


class FakeClock:
    """Millisecond clock that only moves when told to"""

    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(scope="session", autouse=True)
def database():
    from app.core.database import init_db
    from app.models.study_session import StudySession  # noqa: F401
    init_db()
    yield
