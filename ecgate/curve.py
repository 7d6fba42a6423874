"""
Short Weierstrass 곡선 모델
=============================

게이트가 네이티브로 검사하는 곡선 E: y² = x³ + b  (a = 0) 의 점 연산.

**점 표현**:
  py_ecc와 같은 관례를 따른다.
  - 유한 점: (x, y) 튜플, 좌표는 필드 원소
  - 항등원(무한원점): None (유한 좌표가 없으므로 구조적으로만 다룬다)

**곡선 파라미터 (CurveParams)**:
  (소수 p, 상수 b)를 묶은 불변 컨텍스트. 전역 상태 대신 Curve와 Evaluator의
  생성자에 명시적으로 넘기므로 여러 곡선을 동시에 쓸 수 있다.

  | 이름     | 필드                  | 방정식          | 비고                       |
  |----------|-----------------------|-----------------|----------------------------|
  | GRUMPKIN | bn128 스칼라 필드 (FR) | y² = x³ - 17    | bn128 회로에 내장되는 곡선 |
  | BN254    | bn128 기저 필드        | y² = x³ + 3     | 생성자 (1, 2)              |

**덧셈 공식 (할선)**:
  λ = (y2 - y1) / (x2 - x1)
  x3 = λ² - x1 - x2
  y3 = λ·(x1 - x3) - y1

**배가 공식 (접선)**:
  λ = 3·x1² / (2·y1)
  x3 = λ² - 2·x1
  y3 = λ·(x1 - x3) - y1

이 모듈의 공식은 "정직한 witness"를 계산하는 데 쓰인다. 게이트가 실제로 검사하는
식은 나눗셈이 없는 다항식 형태이며 evaluator 모듈에 있다.

사용 예시:
    >>> curve = Curve(GRUMPKIN)
    >>> g = curve.generator
    >>> curve.is_on_curve(curve.double(g))  # True
"""

from py_ecc import bn128

from ecgate.errors import (
    InvalidCondition,
    InvalidDoubling,
    InvalidPoint,
    VerticalLine,
)
from ecgate.field import CURVE_ORDER, invert, is_boolean, make_field, sqrt, to_field


# 항등원 (point at infinity)
IDENTITY = None


class CurveParams:
    """곡선 y² = x³ + b 의 불변 파라미터.

    속성:
        modulus: 기저 필드의 소수 p
        b: 곡선 상수 (정수, [0, p)로 정규화)
        name: 표시용 이름
        order: 점 군의 위수 (알려진 경우, 스칼라 곱에서 사용)
        generator: 생성자 (x, y) 정수 쌍. y가 None이면 x에서 복원한다.
    """

    __slots__ = ("_modulus", "_b", "_name", "_order", "_generator")

    def __init__(self, modulus, b, name=None, order=None, generator=None):
        self._modulus = modulus
        self._b = b % modulus
        self._name = name or f"y^2 = x^3 + {b} mod {modulus}"
        self._order = order
        self._generator = generator

    @property
    def modulus(self):
        return self._modulus

    @property
    def b(self):
        return self._b

    @property
    def name(self):
        return self._name

    @property
    def order(self):
        return self._order

    @property
    def generator(self):
        return self._generator

    @property
    def field(self):
        return make_field(self._modulus)

    def __repr__(self):
        return f"CurveParams({self._name})"


# Grumpkin: bn128의 스칼라 필드 위에 정의된 곡선 (점 군의 위수 = bn128 기저 필드 위수)
GRUMPKIN = CurveParams(
    CURVE_ORDER, -17, name="grumpkin", order=bn128.field_modulus, generator=(1, None)
)

# BN254 G1: py_ecc bn128과 같은 곡선
BN254 = CurveParams(
    bn128.field_modulus, 3, name="bn254", order=bn128.curve_order, generator=(1, 2)
)


class Curve:
    """CurveParams 위의 점 연산.

    모든 연산은 순수 함수이며 점은 값으로 복사된다.
    """

    def __init__(self, params):
        self.params = params
        self.field = params.field
        self.b = self.field(params.b)
        self._generator = None

    def __repr__(self):
        return f"Curve({self.params.name})"

    # ── 점 생성 ──

    def point(self, x, y):
        """정수 또는 필드 원소 좌표로 점을 만든다 (곡선 검사 없음)."""
        return (to_field(x, self.field), to_field(y, self.field))

    @property
    def generator(self):
        if self._generator is None and self.params.generator is not None:
            x, y = self.params.generator
            if y is None:
                self._generator = self.lift_x(x, canonical=True)
            else:
                self._generator = self.point(x, y)
        return self._generator

    def lift_x(self, x, odd=None, canonical=False):
        """x 좌표에 대응하는 곡선 위의 점을 반환한다.

        Args:
            x: x 좌표
            odd: True/False이면 y의 홀짝을 맞춘다
            canonical: True이면 두 제곱근 중 작은 쪽을 고른다

        Raises:
            InvalidPoint: x³ + b가 이차잉여가 아닐 때
        """
        x = to_field(x, self.field)
        y = sqrt(x * x * x + self.b)
        if y is None:
            raise InvalidPoint(f"x = {x.n} 에 대응하는 점이 곡선 위에 없습니다")
        if canonical and y.n > self.field.field_modulus - y.n:
            y = -y
        if odd is not None and (y.n & 1) != int(odd):
            y = -y
        return (x, y)

    def random_point(self, rng):
        """rng (random.Random)로 곡선 위의 임의의 유한 점을 고른다."""
        p = self.field.field_modulus
        while True:
            x = self.field(rng.randrange(p))
            y = sqrt(x * x * x + self.b)
            if y is None:
                continue
            if rng.randrange(2):
                y = -y
            return (x, y)

    # ── 판정 ──

    def is_identity(self, p):
        return p is None

    def is_on_curve(self, p):
        """p가 항등원이거나 y² = x³ + b 를 만족하면 True."""
        return bn128.is_on_curve(p, self.b)

    def require_on_curve(self, p):
        """곡선 위의 점이 아니면 InvalidPoint를 던진다."""
        if not self.is_on_curve(p):
            x, y = p
            raise InvalidPoint(f"점 ({x.n}, {y.n}) 이 {self.params.name} 위에 있지 않습니다")
        return p

    # ── 군 연산 ──

    def neg(self, p):
        return bn128.neg(p)

    def add(self, p1, p2):
        """p1 + p2 (할선 공식).

        - 한쪽이 항등원이면 다른 쪽을 반환
        - x1 = x2, y1 = -y2 이면 항등원
        - x1 = x2, y1 ≠ -y2 이면 VerticalLine (배가로 처리해야 함)

        Raises:
            VerticalLine: p1 = p2 인 경우
        """
        if p1 is None:
            return p2
        if p2 is None:
            return p1
        x1, y1 = p1
        x2, y2 = p2
        if x1 == x2:
            if y1 == -y2:
                return IDENTITY
            raise VerticalLine("x1 = x2 인 두 점은 할선 공식으로 더할 수 없습니다")
        lam = (y2 - y1) * invert(x2 - x1)
        x3 = lam * lam - x1 - x2
        y3 = lam * (x1 - x3) - y1
        return (x3, y3)

    def double(self, p):
        """2·p (접선 공식).

        Raises:
            InvalidDoubling: y = 0 (2-비틀림 점)
        """
        if p is None:
            return IDENTITY
        x1, y1 = p
        if y1.n == 0:
            raise InvalidDoubling(f"y = 0 인 점 (x = {x1.n}) 은 배가할 수 없습니다")
        lam = 3 * x1 * x1 * invert(2 * y1)
        x3 = lam * lam - 2 * x1
        y3 = lam * (x1 - x3) - y1
        return (x3, y3)

    def add_complete(self, p1, p2):
        """모든 경우를 처리하는 덧셈: p1 = p2 이면 배가로 우회한다."""
        try:
            return self.add(p1, p2)
        except VerticalLine:
            return self.double(p1)

    def conditional_add(self, p1, p2, cond):
        """cond = 1 이면 p1 + p2, cond = 0 이면 p1.

        Raises:
            InvalidCondition: cond ∉ {0, 1}
            VerticalLine: cond = 1 이고 p1 = p2
        """
        cond = to_field(cond, self.field)
        if not is_boolean(cond):
            raise InvalidCondition(f"조건 비트는 0 또는 1이어야 합니다: {cond.n}")
        if cond.n == 0:
            return p1
        return self.add(p1, p2)

    def scalar_mul(self, p, k):
        """k·p (double-and-add, 최상위 비트부터).

        Args:
            p: 곡선 위의 점
            k: 정수 또는 필드 원소. 위수가 알려져 있으면 위수로 나눈 나머지를 쓴다.
        """
        k = int(k)
        if self.params.order is not None:
            k %= self.params.order
        if k < 0:
            k, p = -k, self.neg(p)
        acc = IDENTITY
        for bit in bin(k)[2:]:
            acc = self.double(acc)
            if bit == "1":
                acc = self.add_complete(acc, p)
        return acc
