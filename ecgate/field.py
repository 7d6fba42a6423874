"""
EC 게이트 기반 모듈: 유한체(Finite Field) 산술
================================================

게이트의 모든 배선(witness) 값과 셀렉터 값은 하나의 소수체(native field) 위의
원소이다. 이 모듈은 그 소수체의 원소 타입과 보조 연산을 정의한다.

**유한체 FR**:
  bn128 곡선의 스칼라 필드. Grumpkin 곡선의 기저 필드(base field)와 같으므로,
  bn128 위의 PLONK 회로는 Grumpkin 점 연산을 "네이티브"하게 검사할 수 있다.
  - 위수 p ≈ 2^254

**다른 소수체**:
  make_field(p)는 임의의 소수 p에 대한 FQ 서브클래스를 만든다.
  같은 p에 대해서는 항상 같은 클래스를 돌려주므로 여러 곡선/테스트가 공존할 수 있다.

**기본 연산**:
  덧셈/뺄셈/곱셈은 py_ecc FQ의 연산자(+, -, *)를 그대로 쓴다. 모두 전함수(total)이다.
  역원만 부분함수이다: invert(0)은 DivisionByZero를 던진다.
  (py_ecc의 FQ 나눗셈은 0의 역원을 조용히 0으로 취급하므로 직접 검사한다.)

**일괄 역원 (Batch Inversion)**:
  Montgomery 트릭: 누적곱을 한 번 계산하고, 역원을 한 번만 구한 뒤
  뒤에서부터 역대입(back-substitution)하여 N개의 역원을 얻는다.
  역원 1번 + 곱셈 O(N)번.

사용 예시:
    >>> from ecgate.field import FR, invert, batch_invert
    >>> a = FR(3)
    >>> invert(a) * a == FR(1)       # True
    >>> batch_invert([FR(2), FR(4)])  # [2⁻¹, 4⁻¹]
"""

from functools import lru_cache

from py_ecc.fields import bn128_FQ as FQ
from py_ecc.fields.field_elements import FQ as PrimeFieldElement
from py_ecc import bn128

from ecgate.errors import DivisionByZero


# ─────────────────────────────────────────────────────────────────────
# 유한체(Finite Field) FR
# ─────────────────────────────────────────────────────────────────────

class FR(FQ):
    """bn128 스칼라 필드 위의 유한체 원소 (Grumpkin 기저 필드).

    py_ecc의 FQ 클래스를 상속하여 +, -, *, /, ** 등의 필드 연산을 제공한다.
    값은 항상 [0, p) 범위로 정규화되어 .n에 저장된다.
    """
    field_modulus = bn128.curve_order


# 곡선 위수 (필드 크기)
CURVE_ORDER = bn128.curve_order


@lru_cache(maxsize=None)
def make_field(modulus):
    """소수 modulus 위의 유한체 원소 클래스를 반환한다.

    Args:
        modulus: 소수 p (소수성은 검사하지 않는다)

    Returns:
        type: FQ 서브클래스. modulus가 CURVE_ORDER이면 FR 자체.

    Raises:
        ValueError: modulus < 2

    예시:
        >>> F = make_field(10007)
        >>> F(10000) + F(10)   # F(3)
    """
    if modulus < 2:
        raise ValueError(f"필드 위수는 2 이상이어야 합니다: {modulus}")
    if modulus == CURVE_ORDER:
        return FR
    return type(f"F{modulus}", (PrimeFieldElement,), {"field_modulus": modulus})


def to_field(value, field=FR):
    """정수나 다른 필드의 원소를 field의 원소로 변환한다."""
    if isinstance(value, field):
        return value
    if isinstance(value, PrimeFieldElement):
        return field(value.n)
    return field(int(value))


# ─────────────────────────────────────────────────────────────────────
# 판정 (predicates)
# ─────────────────────────────────────────────────────────────────────

def is_zero(x):
    return x.n == 0


def is_one(x):
    return x.n == 1


def is_boolean(x):
    """x ∈ {0, 1} 인지 확인한다 (x·(x-1) = 0)."""
    return x.n in (0, 1)


# ─────────────────────────────────────────────────────────────────────
# 역원 (Inversion)
# ─────────────────────────────────────────────────────────────────────

def invert(x):
    """x의 곱셈 역원 x⁻¹을 반환한다.

    Raises:
        DivisionByZero: x = 0
    """
    if x.n == 0:
        raise DivisionByZero("0의 역원은 존재하지 않습니다")
    return type(x)(1) / x


def batch_invert(xs):
    """여러 원소의 역원을 한 번의 역원 계산으로 구한다 (Montgomery 트릭).

    1. 누적곱: prefix[i] = x₀·x₁·...·x_{i-1}  (0은 건너뜀)
    2. 전체 곱의 역원을 한 번 계산
    3. 뒤에서부터: xᵢ⁻¹ = (전체 역원) · prefix[i],  그 후 (전체 역원) *= xᵢ

    0인 원소는 역원이 없으므로 결과에서 0으로 남겨 둔다.

    Args:
        xs: 같은 필드의 원소 리스트

    Returns:
        list: 원소별 역원 (입력 순서 유지)

    예시:
        >>> batch_invert([FR(2), FR(0), FR(5)])  # [2⁻¹, 0, 5⁻¹]
    """
    xs = list(xs)
    if not xs:
        return []
    field = type(xs[0])

    prefix = []
    acc = field(1)
    for x in xs:
        prefix.append(acc)
        if x.n != 0:
            acc = acc * x

    inv = invert(acc)
    result = [None] * len(xs)
    for i in range(len(xs) - 1, -1, -1):
        x = xs[i]
        if x.n == 0:
            result[i] = field(0)
            continue
        result[i] = inv * prefix[i]
        inv = inv * x
    return result


# ─────────────────────────────────────────────────────────────────────
# 제곱근 (Square Root)
# ─────────────────────────────────────────────────────────────────────

def legendre(x):
    """르장드르 기호 (x / p): 1 (이차잉여), -1 (비잉여), 0 (x = 0)."""
    p = type(x).field_modulus
    if x.n == 0:
        return 0
    e = pow(x.n, (p - 1) // 2, p)
    return 1 if e == 1 else -1


def sqrt(x):
    """x의 제곱근 하나를 반환한다. 이차잉여가 아니면 None.

    Tonelli–Shanks 알고리즘. p ≡ 3 (mod 4)이면 x^((p+1)/4)로 바로 구한다.
    bn128 스칼라 필드는 p - 1 = 2^28 × m 이므로 일반 경로를 탄다.
    """
    field = type(x)
    p = field.field_modulus
    n = x.n
    if n == 0:
        return field(0)
    if legendre(x) != 1:
        return None
    if p % 4 == 3:
        return field(pow(n, (p + 1) // 4, p))

    # p - 1 = q · 2^s  (q 홀수)
    q, s = p - 1, 0
    while q % 2 == 0:
        q //= 2
        s += 1

    # 비잉여 z 탐색
    z = 2
    while pow(z, (p - 1) // 2, p) != p - 1:
        z += 1

    m = s
    c = pow(z, q, p)
    t = pow(n, q, p)
    r = pow(n, (q + 1) // 2, p)
    while t != 1:
        # t^(2^i) = 1 인 최소 i
        i, t2 = 1, t * t % p
        while t2 != 1:
            t2 = t2 * t2 % p
            i += 1
        b = pow(c, 1 << (m - i - 1), p)
        m = i
        c = b * b % p
        t = t * c % p
        r = r * b % p
    return field(r)
