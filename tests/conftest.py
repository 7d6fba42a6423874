import os
import random
import sys

import pytest

# 프로젝트 루트를 sys.path에 추가
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from ecgate.curve import GRUMPKIN, Curve, CurveParams
from ecgate.evaluator import Evaluator
from ecgate.field import CURVE_ORDER
from ecgate.synthesizer import Synthesizer


# ── 테스트 곡선 ──
# y² = x³ + 17 은 유리수 점 (-2, 3), (-1, 4), (2, 5), (4, 9), (8, 23) 을 가진다.
# 이 점들은 어떤 소수체로 내려도 곡선 위에 있으므로 손으로 검증 가능한 벡터가 된다.
B17 = CurveParams(CURVE_ORDER, 17, name="b17")

# 작은 소수체 (p ≡ 3 mod 4)
SMALL_PRIME = 10007
SMALL_B17 = CurveParams(SMALL_PRIME, 17, name="b17-small")


@pytest.fixture
def rng():
    return random.Random(20240601)


@pytest.fixture(scope="session")
def curve17():
    return Curve(B17)


@pytest.fixture(scope="session")
def grumpkin():
    return Curve(GRUMPKIN)


@pytest.fixture(scope="session")
def small_curve():
    return Curve(SMALL_B17)


@pytest.fixture
def synth17(curve17):
    return Synthesizer(curve17)


@pytest.fixture(scope="session")
def evaluator17():
    return Evaluator(B17)
