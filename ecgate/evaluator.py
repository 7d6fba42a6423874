"""
제약 평가기 (Constraint Evaluator)
===================================

윈도우(head 행의 셀렉터 + 배선 값)를 받아 opcode별 다항식 잔차(residual)를 계산한다.
잔차가 모두 0이면 제약이 만족된 것이다.

**나눗셈 없는 관계식**:
  증명 시스템의 코셋 FFT 도메인 크기는 게이트 차수에 비례하므로,
  기울기(λ) 대신 교차곱 형태의 다항식을 검사하여 차수를 5 이하로 유지한다.

  조건부 덧셈 (행: (x1,y1), (x2,y2), (cond,·), (x3,y3)):
    cond · [(x2 - x1)·(-y3 - y1) - (y2 - y1)·(x3 - x1)]   (공선성: (x3, -y3)가 같은 직선 위)
    (1 - cond) · (x3 - x1)
    (1 - cond) · (y3 - y1)
    cond · (cond - 1)

  배가 (행: (x1,y1), (x3,y3)):
    2·y1·(y3 + y1) + 3·x1²·(x3 - x1)                      (접선)

  곡선 위 (행: (x1,y1)):
    y1² - x1³ - b

  부분 비트 분해 (행: (x1,y1), (x2,y2), (x3,y3)):
    x3 - (x1 + 2·y1 + 4·x2 + 8·y2 + 16·y3)
    bᵢ·(bᵢ - 1)   for bᵢ ∈ {x1, y1, x2, y2}

  필드 덧셈 / 곱셈 (행: (a0,b0), (a1,·)):
    a1 - a0 - b0
    a1 - a0·b0

**증명 시스템이 보는 단일 식**:
  각 행 i에서 (회전 0..3의 배선 값을 사용해)
    Σ_EC    q_ec·qⱼ·(관계식ⱼ)  +  Σ_field (1 - q_ec)·qⱼ·(관계식ⱼ)
  가 0이어야 한다. gate_expressions()가 이 식의 항들을 계산한다.

사용 예시:
    >>> evaluator = Evaluator(GRUMPKIN)
    >>> evaluator.check_all(trace)   # [] 이면 모든 윈도우 만족
"""

from ecgate.errors import GateError, MalformedWindow
from ecgate.layout import GATES, Opcode, dispatch, gate, is_noop
from ecgate.trace import Row


# ─────────────────────────────────────────────────────────────────────
# 관계식 (residual polynomials)
# ─────────────────────────────────────────────────────────────────────

def collinearity_residual(x1, y1, x2, y2, x3, y3):
    """(x1,y1), (x2,y2), (x3,-y3)가 한 직선 위에 있으면 0."""
    return (x2 - x1) * (-y3 - y1) - (y2 - y1) * (x3 - x1)


def tangent_residual(x1, y1, x3, y3):
    """(x3,-y3)가 (x1,y1)에서의 접선 위에 있으면 0."""
    return 2 * y1 * (y3 + y1) + 3 * x1 * x1 * (x3 - x1)


def on_curve_residual(x1, y1, b):
    return y1 * y1 - x1 * x1 * x1 - b


def bit_residual(bit):
    return bit * (bit - 1)


def decompose_residual(x1, y1, x2, y2, x3, y3):
    return x3 - (x1 + 2 * y1 + 4 * x2 + 8 * y2 + 16 * y3)


# ─────────────────────────────────────────────────────────────────────
# 윈도우
# ─────────────────────────────────────────────────────────────────────

class Window:
    """한 opcode가 검사되는 연속 행 묶음.

    속성:
        offset: head 행의 offset (window index)
        opcode: Opcode
        rows: Row 리스트 (길이 = cost)
    """

    __slots__ = ("offset", "opcode", "rows")

    def __init__(self, offset, opcode, rows):
        self.offset = offset
        self.opcode = opcode
        self.rows = list(rows)

    def __repr__(self):
        return f"Window(offset={self.offset}, opcode={self.opcode.name})"


class Evaluator:
    """곡선 파라미터에 묶인 제약 평가기. 순수 함수만 가진다."""

    def __init__(self, params):
        self.params = params
        self.field = params.field
        self.b = self.field(params.b)

    # ── opcode별 잔차 ──

    def _conditional_add(self, rows):
        (x1, y1), (x2, y2), (cond, _), (x3, y3) = [(r.a, r.b) for r in rows]
        one = self.field(1)
        return [
            cond * collinearity_residual(x1, y1, x2, y2, x3, y3),
            (one - cond) * (x3 - x1),
            (one - cond) * (y3 - y1),
            bit_residual(cond),
        ]

    def _double(self, rows):
        (x1, y1), (x3, y3) = [(r.a, r.b) for r in rows]
        return [tangent_residual(x1, y1, x3, y3)]

    def _on_curve(self, rows):
        row = rows[0]
        return [on_curve_residual(row.a, row.b, self.b)]

    def _partial_bit_decompose(self, rows):
        (x1, y1), (x2, y2), (x3, y3) = [(r.a, r.b) for r in rows]
        return [decompose_residual(x1, y1, x2, y2, x3, y3)] + [
            bit_residual(bit) for bit in (x1, y1, x2, y2)
        ]

    def _field_add(self, rows):
        return [rows[1].a - rows[0].a - rows[0].b]

    def _field_mul(self, rows):
        return [rows[1].a - rows[0].a * rows[0].b]

    _RELATIONS = {
        Opcode.CONDITIONAL_ADD: _conditional_add,
        Opcode.DOUBLE: _double,
        Opcode.ON_CURVE: _on_curve,
        Opcode.PARTIAL_BIT_DECOMPOSE: _partial_bit_decompose,
        Opcode.FIELD_ADD: _field_add,
        Opcode.FIELD_MUL: _field_mul,
    }

    # ── 윈도우 검사 ──

    def evaluate(self, window):
        """윈도우의 잔차 리스트를 반환한다 (모두 0이면 만족)."""
        g = gate(window.opcode)
        if len(window.rows) != g.cost:
            raise MalformedWindow(
                f"행 수({len(window.rows)})가 cost({g.cost})와 다릅니다",
                window_index=window.offset, opcode=window.opcode,
            )
        return self._RELATIONS[window.opcode](self, window.rows)

    def check(self, window):
        return all(r.n == 0 for r in self.evaluate(window))

    def windows(self, trace):
        """트레이스를 head 행부터 순서대로 훑어 윈도우를 만든다.

        no-op 행은 건너뛴다.

        Raises:
            UnknownSelectorCombination: head 행의 셀렉터가 게이트 표에 없을 때
            MalformedWindow: 윈도우가 트레이스 끝에서 잘렸거나 후행 행의 셀렉터가 켜져 있을 때
        """
        rows = [trace.row(i) for i in range(len(trace))]
        windows = []
        i = 0
        while i < len(rows):
            head = rows[i]
            if is_noop(head.selectors):
                i += 1
                continue
            try:
                opcode = dispatch(head.selectors)
            except GateError as err:
                raise err.at(i, None) from None
            cost = gate(opcode).cost
            if i + cost > len(rows):
                raise MalformedWindow(
                    f"윈도우가 트레이스 끝({len(rows)})을 넘습니다", window_index=i, opcode=opcode,
                )
            for j in range(i + 1, i + cost):
                if not is_noop(rows[j].selectors):
                    raise MalformedWindow(
                        f"후행 행 {j} 에 셀렉터가 켜져 있습니다", window_index=i, opcode=opcode,
                    )
            windows.append(Window(i, opcode, rows[i:i + cost]))
            i += cost
        return windows

    def check_windows(self, windows):
        """윈도우들 중 실패한 (window_index, 잔차) 리스트."""
        failures = []
        for window in windows:
            for residual in self.evaluate(window):
                if residual.n != 0:
                    failures.append((window.offset, residual))
        return failures

    def check_all(self, trace):
        """트레이스 전체를 검사해 실패한 (window_index, 잔차) 리스트를 반환한다."""
        return self.check_windows(self.windows(trace))

    def check_copy_constraints(self, trace):
        """값이 다른 복사 제약 (Cell, Cell) 리스트."""
        return [
            (left, right)
            for left, right in trace.copy_constraints
            if trace.value(left) != trace.value(right)
        ]

    # ── 증명 시스템이 보는 식 ──

    def gate_expressions(self, rows, selectors):
        """head 행의 셀렉터와 회전 0..3의 행으로 모든 게이트 항을 계산한다.

        각 항 = (셀렉터 곱) × (관계식). 올바른 트레이스의 모든 행에서 전부 0이다.
        rows가 4개보다 짧으면 0 행으로 채운다.

        Returns:
            list: 필드 원소 리스트 (게이트 표 순서, 게이트별 잔차 순서)
        """
        zero = self.field(0)
        rows = list(rows) + [Row(zero, zero)] * (4 - len(rows))
        q_ec, q1, q2, q3 = [self.field(int(s)) for s in selectors]
        one = self.field(1)
        q = {1: q1, 2: q2, 3: q3}
        terms = []
        for g in GATES:
            j = g.selectors.index(1, 1)
            enable = (q_ec if g.is_ec else one - q_ec) * q[j]
            for residual in self._RELATIONS[g.opcode](self, rows[:g.cost]):
                terms.append(enable * residual)
        return terms


def check_all(trace, params):
    """Evaluator(params).check_all(trace)."""
    return Evaluator(params).check_all(trace)
