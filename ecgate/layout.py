"""
게이트 레이아웃 (Gate Layout)
==============================

두 개의 배선 열(a, b)과 네 개의 셀렉터 열(q_ec, q1, q2, q3)만으로
여섯 가지 연산을 표현한다. 윈도우의 첫 행(head)에 있는 셀렉터 비트가
윈도우 전체의 opcode를 결정하고, 나머지 (cost - 1)개 행은 배선 값만 가진다.

**게이트 표**:
  | opcode                | cost | q_ec | q1 | q2 | q3 | 관계                                   |
  |-----------------------|------|------|----|----|----|----------------------------------------|
  | CONDITIONAL_ADD       |  4   |  1   | 1  | 0  | 0  | (x1,y1), (x2,y2), (x3,-y3) 한 직선 위  |
  | DOUBLE                |  2   |  1   | 0  | 1  | 0  | (x1,y1), (x3,-y3) 한 접선 위           |
  | ON_CURVE              |  1   |  1   | 0  | 0  | 1  | y1² = x1³ + b                          |
  | PARTIAL_BIT_DECOMPOSE |  3   |  0   | 1  | 0  | 0  | x3 = x1 + 2y1 + 4x2 + 8y2 + 16y3       |
  | FIELD_ADD             |  2   |  0   | 0  | 1  | 0  | a1 = a0 + b0                           |
  | FIELD_MUL             |  2   |  0   | 0  | 0  | 1  | a1 = a0 · b0                           |

  q_ec가 EC 연산과 필드 연산을 나누고, 그 안에서 q1/q2/q3 중 정확히 하나가 켜진다.
  모든 셀렉터가 0인 행은 no-op(패딩) 행이다.

**게이트 차수 (degree)**:
  관계식의 차수 + 셀렉터 곱의 차수 (q_ec·qᵢ 또는 (1 - q_ec)·qᵢ → 2).
  모든 게이트가 5 이하이다.

사용 예시:
    >>> select(Opcode.DOUBLE)       # (1, 0, 1, 0)
    >>> dispatch((0, 0, 0, 1))      # Opcode.FIELD_MUL
"""

from enum import Enum

from ecgate.errors import UnknownSelectorCombination


# 셀렉터 열 이름 (순서 고정)
SELECTOR_COLUMNS = ("q_ec", "q1", "q2", "q3")

# no-op (패딩) 셀렉터 패턴
NOOP = (0, 0, 0, 0)

# 최대 허용 게이트 차수
MAX_DEGREE = 5


class Opcode(Enum):
    """게이트가 표현하는 연산의 닫힌 집합."""
    CONDITIONAL_ADD = "conditional ec add"
    DOUBLE = "ec double"
    ON_CURVE = "is on curve"
    PARTIAL_BIT_DECOMPOSE = "partial bit decompose"
    FIELD_ADD = "field add"
    FIELD_MUL = "field mul"


class Gate:
    """게이트 하나의 정적 기술자.

    속성:
        opcode: Opcode
        cost: 윈도우가 차지하는 행 수
        selectors: (q_ec, q1, q2, q3)
        degree: 셀렉터를 포함한 제약식의 차수
        relation: 사람이 읽을 수 있는 관계식
        roles: 행 오프셋별 (a 열, b 열)의 의미
    """

    __slots__ = ("opcode", "cost", "selectors", "degree", "relation", "roles")

    def __init__(self, opcode, cost, selectors, degree, relation, roles):
        if len(roles) != cost:
            raise ValueError(f"{opcode.name}: roles 길이({len(roles)})가 cost({cost})와 다릅니다")
        self.opcode = opcode
        self.cost = cost
        self.selectors = tuple(selectors)
        self.degree = degree
        self.relation = relation
        self.roles = tuple(roles)

    @property
    def is_ec(self):
        return self.selectors[0] == 1

    def __repr__(self):
        return f"Gate({self.opcode.name}, cost={self.cost}, selectors={self.selectors})"


GATES = (
    Gate(
        Opcode.CONDITIONAL_ADD, 4, (1, 1, 0, 0), 5,
        "cond·[(x2-x1)(-y3-y1) - (y2-y1)(x3-x1)] = 0, (1-cond)·(p3-p1) = 0",
        (("x1", "y1"), ("x2", "y2"), ("cond", None), ("x3", "y3")),
    ),
    Gate(
        Opcode.DOUBLE, 2, (1, 0, 1, 0), 5,
        "2·y1·(y3+y1) + 3·x1²·(x3-x1) = 0",
        (("x1", "y1"), ("x3", "y3")),
    ),
    Gate(
        Opcode.ON_CURVE, 1, (1, 0, 0, 1), 5,
        "y1² - x1³ - b = 0",
        (("x1", "y1"),),
    ),
    Gate(
        Opcode.PARTIAL_BIT_DECOMPOSE, 3, (0, 1, 0, 0), 4,
        "x3 = x1 + 2·y1 + 4·x2 + 8·y2 + 16·y3, x1, y1, x2, y2 ∈ {0, 1}",
        (("x1", "y1"), ("x2", "y2"), ("x3", "y3")),
    ),
    Gate(
        Opcode.FIELD_ADD, 2, (0, 0, 1, 0), 3,
        "a1 = a0 + b0",
        (("a0", "b0"), ("a1", None)),
    ),
    Gate(
        Opcode.FIELD_MUL, 2, (0, 0, 0, 1), 4,
        "a1 = a0 · b0",
        (("a0", "b0"), ("a1", None)),
    ),
)

# opcode → Gate
GATE_TABLE = {gate.opcode: gate for gate in GATES}

# 셀렉터 패턴 → opcode
_DISPATCH = {gate.selectors: gate.opcode for gate in GATES}


def gate(opcode):
    """opcode의 Gate 기술자를 반환한다."""
    return GATE_TABLE[opcode]


def select(opcode):
    """opcode → (q_ec, q1, q2, q3)."""
    return GATE_TABLE[opcode].selectors


def normalize_selectors(bits):
    """셀렉터 값(정수 또는 필드 원소) 4개를 정수 튜플로 바꾼다."""
    bits = tuple(int(b) for b in bits)
    if len(bits) != len(SELECTOR_COLUMNS):
        raise UnknownSelectorCombination(f"셀렉터는 4개여야 합니다: {bits}")
    return bits


def is_noop(bits):
    return normalize_selectors(bits) == NOOP


def dispatch(bits):
    """(q_ec, q1, q2, q3) → opcode.

    Raises:
        UnknownSelectorCombination: 게이트 표에 없는 조합
            (전부 0, q_ec만 1, qᵢ 둘 이상, 0/1이 아닌 값 등)
    """
    bits = normalize_selectors(bits)
    try:
        return _DISPATCH[bits]
    except KeyError:
        raise UnknownSelectorCombination(
            f"등록되지 않은 셀렉터 조합입니다: q_ec={bits[0]}, q1={bits[1]}, q2={bits[2]}, q3={bits[3]}"
        ) from None
