"""
트레이스 (Trace): 행과 윈도우의 저장소
========================================

트레이스는 행(row)의 순서열이며 합성(synthesis) 중에는 뒤에 덧붙이기만 한다.

  행 = (a, b, q_ec, q1, q2, q3)

  | offset | a    | b    | q_ec | q1 | q2 | q3 |
  |--------|------|------|------|----|----|----|
  | 0      | x1   | y1   |  1   | 0  | 1  | 0  |  ← DOUBLE 윈도우의 head
  | 1      | x3   | y3   |  0   | 0  | 0  | 0  |
  | 2      | a0   | b0   |  0   | 0  | 0  | 1  |  ← FIELD_MUL 윈도우의 head
  | 3      | a1   | 0    |  0   | 0  | 0  | 0  |

윈도우는 head 행의 offset으로 식별한다 (window index).

**병렬 합성**:
  reserve()가 락(lock) 안에서 cost개의 연속 행을 원자적으로 예약한다.
  예약한 쪽만 그 범위에 쓸 수 있으므로, 서로 다른 스레드가 각자의 범위를
  조정 없이 채울 수 있다. 채우다 실패하면 abandon()으로 범위를 no-op 행으로 만든다.

**배선 복사 제약 (copy constraint)**:
  서로 다른 윈도우의 셀이 같은 값을 가져야 할 때 (예: 배가 결과가 다음 덧셈의 입력)
  (row, column) 쌍으로 기록한다.

**마무리 (finalize)**:
  증명 시스템은 2의 거듭제곱 크기의 도메인을 요구하므로 모든 셀렉터가 0인
  no-op 행으로 패딩한 뒤 열 벡터를 내보낸다.
"""

import threading
from collections import namedtuple

from ecgate.errors import ReservationError
from ecgate.field import FR, to_field
from ecgate.layout import NOOP, SELECTOR_COLUMNS, gate


# 셀 주소: (행 offset, 열 이름 "a" 또는 "b")
Cell = namedtuple("Cell", ["row", "column"])

COLUMNS = ("a", "b")


class Row:
    """트레이스의 한 행. 값은 필드 원소, 셀렉터는 0/1 정수."""

    __slots__ = ("a", "b", "selectors")

    def __init__(self, a, b, selectors=NOOP):
        self.a = a
        self.b = b
        self.selectors = tuple(selectors)

    def value(self, column):
        if column not in COLUMNS:
            raise KeyError(f"알 수 없는 열입니다: {column}")
        return self.a if column == "a" else self.b

    def __repr__(self):
        return f"Row(a={self.a.n}, b={self.b.n}, selectors={self.selectors})"


class Reservation:
    """트레이스에서 원자적으로 예약한 연속 행 범위 (한 윈도우).

    fill() 또는 abandon() 중 하나를 정확히 한 번 호출해야 한다.
    """

    def __init__(self, trace, start, opcode):
        self.trace = trace
        self.start = start
        self.opcode = opcode
        self.cost = gate(opcode).cost
        self.done = False

    def cell(self, offset, column):
        """윈도우 안 offset번째 행의 셀 주소."""
        if not 0 <= offset < self.cost:
            raise ReservationError(
                f"행 offset {offset} 이 윈도우 범위를 벗어났습니다",
                window_index=self.start, opcode=self.opcode,
            )
        return Cell(self.start + offset, column)

    def fill(self, rows):
        """예약한 범위에 (a, b) 쌍들을 쓴다. head 행에는 opcode의 셀렉터를 켠다."""
        self._check_open()
        # 검증이 끝난 뒤에만 기록되므로 실패해도 범위는 비어 있다
        self.trace._write(self.start, self.opcode, rows)
        self.done = True

    def abandon(self):
        """예약한 범위를 no-op 행으로 채운다 (실패한 합성의 흔적을 남기지 않음)."""
        self._check_open()
        self.trace._clear(self.start, self.cost)
        self.done = True

    def _check_open(self):
        if self.done:
            raise ReservationError(
                "이미 사용한 예약입니다", window_index=self.start, opcode=self.opcode,
            )


class Trace:
    """행의 순서열 + 복사 제약.

    속성:
        field: 배선 값의 필드 클래스
        copy_constraints: (Cell, Cell) 리스트
    """

    def __init__(self, field=FR):
        self.field = field
        self._rows = []
        self.copy_constraints = []
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._rows)

    @property
    def rows(self):
        return list(self._rows)

    def row(self, offset):
        row = self._rows[offset]
        if row is None:
            raise ReservationError(f"행 {offset} 은 예약만 되고 아직 채워지지 않았습니다")
        return row

    def value(self, cell):
        return self.row(cell.row).value(cell.column)

    # ── 쓰기 ──

    def reserve(self, opcode):
        """opcode의 cost만큼 연속 행을 원자적으로 예약한다."""
        cost = gate(opcode).cost
        with self._lock:
            start = len(self._rows)
            self._rows.extend([None] * cost)
        return Reservation(self, start, opcode)

    def append(self, opcode, rows):
        """윈도우 하나를 예약하고 바로 채운다. head 행 offset을 반환한다."""
        reservation = self.reserve(opcode)
        try:
            reservation.fill(rows)
        except Exception:
            if not reservation.done:
                reservation.abandon()
            raise
        return reservation.start

    def add_copy_constraint(self, left, right):
        """셀 left와 right가 같은 값을 가져야 함을 기록한다."""
        with self._lock:
            self.copy_constraints.append((Cell(*left), Cell(*right)))

    def pad(self, count):
        """no-op 행 count개를 덧붙인다."""
        zero = self.field(0)
        with self._lock:
            self._rows.extend(Row(zero, zero) for _ in range(count))

    def _write(self, start, opcode, rows):
        g = gate(opcode)
        if len(rows) != g.cost:
            raise ReservationError(
                f"행 수({len(rows)})가 cost({g.cost})와 다릅니다",
                window_index=start, opcode=opcode,
            )
        built = []
        for i, (a, b) in enumerate(rows):
            a = to_field(0 if a is None else a, self.field)
            b = to_field(0 if b is None else b, self.field)
            built.append(Row(a, b, g.selectors if i == 0 else NOOP))
        for i, row in enumerate(built):
            self._rows[start + i] = row

    def _clear(self, start, count):
        """start부터 count개 행을 no-op 행으로 덮어쓴다."""
        zero = self.field(0)
        for i in range(count):
            self._rows[start + i] = Row(zero, zero)

    # ── 내보내기 ──

    def pending(self):
        """예약됐지만 아직 채워지지 않은 행 offset 리스트."""
        return [i for i, row in enumerate(self._rows) if row is None]

    def finalize(self, size=None):
        """no-op 행으로 2의 거듭제곱 길이(또는 size)까지 패딩하고 열 벡터를 반환한다.

        Raises:
            ReservationError: 채워지지 않은 예약이 남아 있거나 size가 너무 작을 때
        """
        pending = self.pending()
        if pending:
            raise ReservationError(f"채워지지 않은 예약 행이 있습니다: {pending[:8]}")
        target = next_power_of_2(len(self._rows)) if size is None else size
        if target < len(self._rows) or target & (target - 1):
            raise ReservationError(f"도메인 크기는 {len(self._rows)} 이상의 2의 거듭제곱이어야 합니다: {target}")
        self.pad(target - len(self._rows))
        return self.columns()

    def columns(self):
        """열 벡터 {a, b, q_ec, q1, q2, q3} (모두 필드 원소 리스트, 길이 동일)."""
        rows = [self.row(i) for i in range(len(self._rows))]
        cols = {
            "a": [row.a for row in rows],
            "b": [row.b for row in rows],
        }
        for j, name in enumerate(SELECTOR_COLUMNS):
            cols[name] = [self.field(row.selectors[j]) for row in rows]
        return cols


def next_power_of_2(n):
    """n 이상의 가장 작은 2의 거듭제곱을 반환한다.

    예시:
        >>> next_power_of_2(3)  # 4
        >>> next_power_of_2(4)  # 4
        >>> next_power_of_2(5)  # 8
    """
    if n <= 1:
        return 1
    p = 1
    while p < n:
        p <<= 1
    return p
