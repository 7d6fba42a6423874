"""
Witness 합성기 (Witness Synthesizer)
======================================

고수준 연산 요청(점 덧셈, 배가, 비트 분해, 필드 연산 ...)을 받아
평가기가 통과시키는 윈도우를 트레이스에 기록한다.

**합성 순서**:
  1. 입력 검증 (곡선 위의 점인지, 비트가 0/1인지 ...)
  2. Curve / 필드 연산으로 중간값과 출력값 계산
  3. 윈도우의 모든 행을 만든 뒤 한 번에 trace.append  (윈도우 단위 all-or-nothing)
  4. 입력이 이전에 배정된 셀(AssignedCell / AssignedPoint)이면 복사 제약 기록

**윈도우 레이아웃** (행 offset: a 열, b 열):
  CONDITIONAL_ADD        0: x1, y1   1: x2, y2   2: cond, 0   3: x3, y3
  DOUBLE                 0: x1, y1   1: x3, y3
  ON_CURVE               0: x1, y1
  PARTIAL_BIT_DECOMPOSE  0: x1, y1   1: x2, y2   2: x3, y3
  FIELD_ADD / FIELD_MUL  0: a0, b0   1: a1, 0

덧셈/배가 게이트는 직선(접선) 관계만 검사하므로, 출력점이 곡선 위에 있다는 사실은
바로 뒤에 붙는 ON_CURVE 윈도우가 보장한다 (두 윈도우는 복사 제약으로 연결).

**스칼라 곱**:
  스칼라를 128비트 두 조각으로 나누고 각 조각을 PARTIAL_BIT_DECOMPOSE 윈도우
  32개의 사슬로 분해한다 (윈도우당 4비트, 다음 윈도우의 x3 = 이전 윈도우의 y3).
  분해된 비트 셀을 조건 비트로 써서 최상위 비트부터 double-and-add 한다.

사용 예시:
    >>> synth = Synthesizer(Curve(GRUMPKIN))
    >>> p = synth.load_point(g)
    >>> q = synth.double(p)
    >>> Evaluator(GRUMPKIN).check_all(synth.trace)   # []
"""

from contextlib import contextmanager

from ecgate.errors import GateError, InvalidCondition, InvalidPoint, RangeError, VerticalLine
from ecgate.field import invert, is_boolean, to_field
from ecgate.layout import Opcode
from ecgate.trace import Cell, Trace


# 스칼라 분해 조각 크기 (비트)
LIMB_BITS = 128

# PARTIAL_BIT_DECOMPOSE 윈도우 하나가 분해하는 비트 수
BITS_PER_WINDOW = 4

# 출력점이 놓이는 행 offset. 이 opcode들 뒤에는 출력점의 ON_CURVE 윈도우가 붙는다.
OUTPUT_ROWS = {
    Opcode.CONDITIONAL_ADD: 3,
    Opcode.DOUBLE: 1,
}

# 비트 분해 윈도우에서 입력 비트 4개의 (행 offset, 열)
_BIT_CELLS = [(0, "a"), (0, "b"), (1, "a"), (1, "b")]


class AssignedCell:
    """트레이스에 배정된 셀과 그 값."""

    __slots__ = ("cell", "value")

    def __init__(self, cell, value):
        self.cell = cell
        self.value = value

    def __repr__(self):
        return f"AssignedCell(row={self.cell.row}, column={self.cell.column}, value={self.value.n})"


class AssignedPoint:
    """트레이스에 배정된 점 (x 셀, y 셀)."""

    __slots__ = ("x", "y")

    def __init__(self, x, y):
        self.x = x
        self.y = y

    @property
    def value(self):
        return (self.x.value, self.y.value)

    def __repr__(self):
        return f"AssignedPoint(row={self.x.cell.row}, x={self.x.value.n}, y={self.y.value.n})"


class Synthesizer:
    """Curve 위의 연산을 트레이스 윈도우로 합성한다.

    속성:
        curve: Curve
        field: 배선 값의 필드 클래스
        trace: 기록 대상 Trace
    """

    def __init__(self, curve, trace=None):
        self.curve = curve
        self.field = curve.field
        self.trace = trace if trace is not None else Trace(curve.field)
        if self.trace.field is not self.field:
            raise ValueError("트레이스의 필드와 곡선의 필드가 다릅니다")

    # ─────────────────────────────────────────────────────────────────
    # 입력 정규화
    # ─────────────────────────────────────────────────────────────────

    def _value(self, v):
        if isinstance(v, AssignedCell):
            return v.value, v
        return to_field(v, self.field), None

    def _point(self, p):
        if isinstance(p, AssignedPoint):
            return p.value, p
        if p is None:
            return None, None
        x, y = p
        return (to_field(x, self.field), to_field(y, self.field)), None

    @contextmanager
    def _context(self, opcode):
        """합성 중 발생한 오류에 예정된 window index와 opcode를 붙인다."""
        try:
            yield
        except GateError as err:
            raise err.at(len(self.trace), opcode) from None

    def _require_point(self, p):
        if p is None:
            raise InvalidPoint("항등원은 유한 좌표가 없어 행에 쓸 수 없습니다")
        return self.curve.require_on_curve(p)

    # ─────────────────────────────────────────────────────────────────
    # opcode별 행 계산 (순수 함수, 트레이스에 쓰지 않음)
    # ─────────────────────────────────────────────────────────────────

    def witness(self, opcode, *args):
        """opcode 윈도우의 (a, b) 행 리스트를 계산한다.

        병렬 합성에서 예약한 범위를 채울 때 쓴다.
        """
        return self._WITNESS[opcode](self, *args)

    def _conditional_add_rows(self, p1, p2, cond):
        p1, _ = self._point(p1)
        p2, _ = self._point(p2)
        cond, _ = self._value(cond)
        if not is_boolean(cond):
            raise InvalidCondition(f"조건 비트는 0 또는 1이어야 합니다: {cond.n}")
        self._require_point(p1)
        self._require_point(p2)
        p3 = self.curve.conditional_add(p1, p2, cond)
        if p3 is None:
            raise VerticalLine("p1 = -p2: 합이 항등원이라 행에 쓸 수 없습니다")
        return [p1, p2, (cond, None), p3]

    def _double_rows(self, p):
        p, _ = self._point(p)
        self._require_point(p)
        return [p, self.curve.double(p)]

    def _on_curve_rows(self, p, allow_invalid=False):
        p, _ = self._point(p)
        if p is None:
            raise InvalidPoint("항등원은 유한 좌표가 없어 행에 쓸 수 없습니다")
        if not allow_invalid:
            self.curve.require_on_curve(p)
        return [p]

    def _partial_bit_decompose_rows(self, bits, x3):
        bits = [self._value(b)[0] for b in bits]
        if len(bits) != BITS_PER_WINDOW:
            raise RangeError(f"비트 입력은 {BITS_PER_WINDOW}개여야 합니다: {len(bits)}")
        for i, bit in enumerate(bits):
            if not is_boolean(bit):
                raise RangeError(f"{i}번째 비트가 0 또는 1이 아닙니다: {bit.n}")
        x1, y1, x2, y2 = bits
        x3, _ = self._value(x3)
        # x3 = x1 + 2·y1 + 4·x2 + 8·y2 + 16·y3 를 y3에 대해 푼다
        y3 = (x3 - x1 - 2 * y1 - 4 * x2 - 8 * y2) * invert(self.field(16))
        return [(x1, y1), (x2, y2), (x3, y3)]

    def _field_add_rows(self, a, b):
        a, _ = self._value(a)
        b, _ = self._value(b)
        return [(a, b), (a + b, None)]

    def _field_mul_rows(self, a, b):
        a, _ = self._value(a)
        b, _ = self._value(b)
        return [(a, b), (a * b, None)]

    _WITNESS = {
        Opcode.CONDITIONAL_ADD: _conditional_add_rows,
        Opcode.DOUBLE: _double_rows,
        Opcode.ON_CURVE: _on_curve_rows,
        Opcode.PARTIAL_BIT_DECOMPOSE: _partial_bit_decompose_rows,
        Opcode.FIELD_ADD: _field_add_rows,
        Opcode.FIELD_MUL: _field_mul_rows,
    }

    # ─────────────────────────────────────────────────────────────────
    # 복사 제약 출처 (witness와 같은 인자)
    # ─────────────────────────────────────────────────────────────────

    def sources(self, opcode, *args):
        """witness(opcode, *args) 윈도우에서 배정된 입력과 이어야 할 셀들.

        Returns:
            list: (행 offset, 열, AssignedCell 또는 None)
        """
        return self._SOURCES[opcode](self, *args)

    def _conditional_add_sources(self, p1, p2, cond):
        return (
            self._point_sources(0, self._point(p1)[1])
            + self._point_sources(1, self._point(p2)[1])
            + [(2, "a", self._value(cond)[1])]
        )

    def _point_input_sources(self, p, allow_invalid=False):
        return self._point_sources(0, self._point(p)[1])

    def _partial_bit_decompose_sources(self, bits, x3):
        return [
            (row, column, self._value(b)[1]) for (row, column), b in zip(_BIT_CELLS, bits)
        ] + [(2, "a", self._value(x3)[1])]

    def _field_op_sources(self, a, b):
        return [(0, "a", self._value(a)[1]), (0, "b", self._value(b)[1])]

    _SOURCES = {
        Opcode.CONDITIONAL_ADD: _conditional_add_sources,
        Opcode.DOUBLE: _point_input_sources,
        Opcode.ON_CURVE: _point_input_sources,
        Opcode.PARTIAL_BIT_DECOMPOSE: _partial_bit_decompose_sources,
        Opcode.FIELD_ADD: _field_op_sources,
        Opcode.FIELD_MUL: _field_op_sources,
    }

    # ─────────────────────────────────────────────────────────────────
    # 기록
    # ─────────────────────────────────────────────────────────────────

    def _commit(self, opcode, rows, sources=()):
        """윈도우를 기록하고 배정된 입력과의 복사 제약을 남긴다."""
        offset = self.trace.append(opcode, rows)
        self.link(offset, sources)
        return offset

    def link(self, offset, sources):
        """offset에 놓인 윈도우의 셀을 배정된 입력 셀과 복사 제약으로 잇는다.

        Args:
            sources: (행 offset, 열, AssignedCell 또는 None) 리스트. None은 건너뛴다.
        """
        for row, column, source in sources:
            if source is not None:
                self.trace.add_copy_constraint(source.cell, Cell(offset + row, column))

    def link_output(self, offset, opcode, check_offset):
        """offset 윈도우의 출력점 셀을 check_offset의 ON_CURVE 윈도우와 잇는다."""
        row = offset + OUTPUT_ROWS[opcode]
        for column in ("a", "b"):
            self.trace.add_copy_constraint(Cell(row, column), Cell(check_offset, column))

    def _assigned(self, offset, row, column):
        cell = Cell(offset + row, column)
        return AssignedCell(cell, self.trace.value(cell))

    def _assigned_point(self, offset, row):
        return AssignedPoint(self._assigned(offset, row, "a"), self._assigned(offset, row, "b"))

    @staticmethod
    def _point_sources(row, assigned):
        if assigned is None:
            return []
        return [(row, "a", assigned.x), (row, "b", assigned.y)]

    # ─────────────────────────────────────────────────────────────────
    # 고수준 연산
    # ─────────────────────────────────────────────────────────────────

    def on_curve(self, p, allow_invalid=False):
        """p를 ON_CURVE 윈도우 하나로 배정한다.

        allow_invalid=True이면 곡선 밖의 점도 기록한다 (불만족 트레이스를 만들 때).

        Raises:
            InvalidPoint: p가 항등원이거나 (allow_invalid가 아닐 때) 곡선 밖일 때
        """
        opcode = Opcode.ON_CURVE
        with self._context(opcode):
            rows = self._on_curve_rows(p, allow_invalid)
        offset = self._commit(opcode, rows, self.sources(opcode, p))
        return self._assigned_point(offset, 0)

    def load_point(self, p):
        """곡선 위의 점을 배정한다 (= on_curve)."""
        return self.on_curve(p)

    def conditional_add(self, p1, p2, cond):
        """cond = 1 이면 p1 + p2, 0 이면 p1 을 배정한다.

        CONDITIONAL_ADD 윈도우 뒤에 출력점의 ON_CURVE 윈도우가 붙는다.

        Raises:
            InvalidCondition: cond ∉ {0, 1}
            InvalidPoint: 입력이 곡선 밖
            VerticalLine: cond = 1 이고 x1 = x2
        """
        opcode = Opcode.CONDITIONAL_ADD
        with self._context(opcode):
            rows = self._conditional_add_rows(p1, p2, cond)
        offset = self._commit(opcode, rows, self.sources(opcode, p1, p2, cond))
        return self._enforce_on_curve(self._assigned_point(offset, OUTPUT_ROWS[opcode]))

    def add(self, p1, p2):
        """p1 + p2 (조건 비트 1인 조건부 덧셈)."""
        return self.conditional_add(p1, p2, 1)

    def double(self, p):
        """2·p 를 배정한다. DOUBLE 윈도우 뒤에 출력점의 ON_CURVE 윈도우가 붙는다.

        Raises:
            InvalidPoint: 입력이 항등원이거나 곡선 밖
            InvalidDoubling: y = 0
        """
        opcode = Opcode.DOUBLE
        with self._context(opcode):
            rows = self._double_rows(p)
        offset = self._commit(opcode, rows, self.sources(opcode, p))
        return self._enforce_on_curve(self._assigned_point(offset, OUTPUT_ROWS[opcode]))

    def _enforce_on_curve(self, point):
        self.on_curve(point)
        return point

    def partial_bit_decompose(self, bits, x3):
        """비트 4개 (x1, y1, x2, y2)와 값 x3으로 y3을 풀어 배정한다.

        x3 = x1 + 2·y1 + 4·x2 + 8·y2 + 16·y3

        Returns:
            list[AssignedCell]: [x1, y1, x2, y2, x3, y3]

        Raises:
            RangeError: 비트가 0/1이 아닐 때 (어떤 행도 기록하기 전에)
        """
        opcode = Opcode.PARTIAL_BIT_DECOMPOSE
        with self._context(opcode):
            rows = self._partial_bit_decompose_rows(bits, x3)
        offset = self._commit(opcode, rows, self.sources(opcode, bits, x3))
        return [
            self._assigned(offset, row, column)
            for row, column in _BIT_CELLS + [(2, "a"), (2, "b")]
        ]

    def field_add(self, a, b):
        """a + b 를 배정하고 결과 셀을 반환한다."""
        opcode = Opcode.FIELD_ADD
        rows = self._field_add_rows(a, b)
        offset = self._commit(opcode, rows, self.sources(opcode, a, b))
        return self._assigned(offset, 1, "a")

    def field_mul(self, a, b):
        """a · b 를 배정하고 결과 셀을 반환한다."""
        opcode = Opcode.FIELD_MUL
        rows = self._field_mul_rows(a, b)
        offset = self._commit(opcode, rows, self.sources(opcode, a, b))
        return self._assigned(offset, 1, "a")

    # ─────────────────────────────────────────────────────────────────
    # 비트 분해 / 스칼라 곱
    # ─────────────────────────────────────────────────────────────────

    def decompose(self, value, num_bits):
        """0 ≤ value < 2^num_bits 를 비트 셀로 분해한다 (리틀 엔디언).

        PARTIAL_BIT_DECOMPOSE 윈도우를 num_bits / 4 개 사슬로 잇는다.
        윈도우 k의 y3 (= value >> 4(k+1)) 가 윈도우 k+1의 x3 로 복사된다.

        Returns:
            tuple: (비트 AssignedCell 리스트, 첫 윈도우의 x3 셀 = value)

        Raises:
            RangeError: value가 범위를 벗어나거나 num_bits가 4의 배수가 아닐 때
        """
        value = int(value)
        with self._context(Opcode.PARTIAL_BIT_DECOMPOSE):
            if num_bits <= 0 or num_bits % BITS_PER_WINDOW:
                raise RangeError(f"비트 수는 {BITS_PER_WINDOW}의 양의 배수여야 합니다: {num_bits}")
            if not 0 <= value < (1 << num_bits):
                raise RangeError(f"값이 {num_bits}비트 범위를 벗어납니다: {value}")
            if (1 << num_bits) > self.field.field_modulus:
                raise RangeError(f"{num_bits}비트 값은 필드에 들어가지 않습니다")

        bits = []
        head = None
        current = x3 = value
        for _ in range(num_bits // BITS_PER_WINDOW):
            chunk = [(current >> i) & 1 for i in range(BITS_PER_WINDOW)]
            cells = self.partial_bit_decompose(chunk, x3)
            if head is None:
                head = cells[4]
            bits.extend(cells[:4])
            x3 = cells[5]
            current >>= BITS_PER_WINDOW
        return bits, head

    def decompose_scalar(self, s):
        """스칼라 s (0 ≤ s < 2^256)를 하위/상위 128비트 조각으로 나눠 비트 셀로 분해한다.

        Returns:
            list[AssignedCell]: 256개의 비트 셀 (리틀 엔디언)
        """
        s = int(s)
        with self._context(Opcode.PARTIAL_BIT_DECOMPOSE):
            if not 0 <= s < (1 << (2 * LIMB_BITS)):
                raise RangeError(f"스칼라가 256비트 범위를 벗어납니다: {s}")
        low, high = s & ((1 << LIMB_BITS) - 1), s >> LIMB_BITS
        low_bits, _ = self.decompose(low, LIMB_BITS)
        high_bits, _ = self.decompose(high, LIMB_BITS)
        return low_bits + high_bits

    def point_mul(self, p, s):
        """s·p 를 배정한다 (최상위 비트부터 double-then-conditional-add).

        곡선의 위수가 알려져 있으면 s를 위수로 나눈 나머지를 분해한다 (Curve.scalar_mul과 같은 결과).

        Raises:
            InvalidPoint: 결과가 항등원일 때 (s ≡ 0), 어떤 행도 기록하기 전에
        """
        s = int(s)
        order = self.curve.params.order
        if order is not None:
            s %= order
        with self._context(Opcode.CONDITIONAL_ADD):
            if s == 0:
                raise InvalidPoint("s ≡ 0: 결과가 항등원이라 행에 쓸 수 없습니다")
        base = p if isinstance(p, AssignedPoint) else self.load_point(p)
        bits = self.decompose_scalar(s)
        top = max(i for i, b in enumerate(bits) if b.value.n == 1)

        acc = base
        for i in range(top - 1, -1, -1):
            acc = self.double(acc)
            acc = self.conditional_add(acc, base, bits[i])
        return acc

    def pad(self, count):
        """no-op 행 count개를 덧붙인다."""
        self.trace.pad(count)
