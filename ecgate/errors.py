"""
EC 게이트 오류 분류 (Error Taxonomy)
======================================

게이트 합성(synthesis)과 검사(evaluation) 과정에서 발생하는 오류를 정의한다.

모든 오류는 GateError를 상속하며, 가능하면 문제가 된 윈도우의 위치
(window_index = 윈도우 첫 행의 오프셋)와 opcode를 함께 전달한다.

  | 오류                        | 발생 시점         | 의미                              |
  |-----------------------------|-------------------|-----------------------------------|
  | DivisionByZero              | 필드 역원         | 0의 역원                          |
  | VerticalLine                | 점 덧셈           | x1 = x2 (배가/항등원으로 우회 필요) |
  | InvalidPoint                | 곡선 검사         | 곡선 위에 있지 않은 점            |
  | InvalidDoubling             | 점 배가           | y = 0 (2-비틀림 점, 수직 접선)    |
  | UnknownSelectorCombination  | 셀렉터 디스패치   | 게이트 표에 없는 셀렉터 조합      |
  | RangeError                  | 비트 분해 합성    | 0/1이 아닌 비트 입력              |
  | InvalidCondition            | 조건부 덧셈 합성  | 0/1이 아닌 조건 비트              |
  | MalformedWindow             | 트레이스 스캔     | 잘린 윈도우 / 후행 행의 셀렉터    |
  | ReservationError            | 트레이스 예약     | 예약 범위 재사용, 길이 불일치     |
"""


class GateError(Exception):
    """EC 게이트 오류의 기반 클래스.

    속성:
        window_index: 문제가 된 윈도우의 첫 행 오프셋 (없으면 None)
        opcode: 관련 Opcode (없으면 None)
    """

    def __init__(self, message, window_index=None, opcode=None):
        self.message = message
        self.window_index = window_index
        self.opcode = opcode
        super().__init__(self._format())

    def _format(self):
        context = []
        if self.window_index is not None:
            context.append(f"window={self.window_index}")
        if self.opcode is not None:
            context.append(f"opcode={getattr(self.opcode, 'name', self.opcode)}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"

    def at(self, window_index, opcode):
        """윈도우 위치와 opcode를 채운 같은 종류의 오류를 반환한다."""
        return type(self)(
            self.message,
            window_index=self.window_index if self.window_index is not None else window_index,
            opcode=self.opcode if self.opcode is not None else opcode,
        )


class DivisionByZero(GateError, ZeroDivisionError):
    """필드 원소 0의 역원을 구하려 할 때."""


class VerticalLine(GateError):
    """x1 = x2인 두 점의 할선 기울기를 구하려 할 때.

    호출자는 배가(double) 또는 항등원 반환으로 우회해야 한다.
    """


class InvalidPoint(GateError, ValueError):
    """곡선 위에 있어야 하는 점이 y² = x³ + b를 만족하지 않을 때."""


class InvalidDoubling(GateError):
    """2-비틀림 점(y = 0)을 배가하려 할 때 (접선이 수직)."""


class UnknownSelectorCombination(GateError):
    """셀렉터 비트 조합에 해당하는 opcode가 없을 때.

    게이트 레이아웃과 평가기 사이의 불일치를 뜻하는 프로그래밍 오류이다.
    """


class RangeError(GateError, ValueError):
    """비트 분해 입력이 {0, 1}에 속하지 않을 때."""


class InvalidCondition(GateError, ValueError):
    """조건부 덧셈의 조건 비트가 {0, 1}에 속하지 않을 때."""


class MalformedWindow(GateError):
    """트레이스 스캔 중 윈도우가 잘렸거나 후행 행에 셀렉터가 켜져 있을 때."""


class ReservationError(GateError):
    """예약된 행 범위를 잘못 사용했을 때 (중복 기록, 길이 불일치 등)."""
