"""
네이티브 EC 게이트 데모: Grumpkin 점 연산
==========================================

이 스크립트는 게이트의 전체 흐름을 시연한다.

실행:
    python -m ecgate.example

흐름:
    1. 곡선 파라미터와 생성자
    2. 점 배정 / 배가 / 조건부 덧셈
    3. 필드 덧셈·곱셈, 부분 비트 분해
    4. 스칼라 곱 (비트 분해 + double-and-add)
    5. 트레이스 마무리 (2의 거듭제곱 패딩) 및 전체 검사
    6. 조작된 트레이스 검사
"""

from ecgate.curve import GRUMPKIN, Curve
from ecgate.evaluator import Evaluator
from ecgate.layout import Opcode
from ecgate.synthesizer import Synthesizer


def main():
    print("=" * 60)
    print("  Native EC Gate Demo")
    print("  곡선: Grumpkin  y² = x³ - 17")
    print("=" * 60)

    # ── 1. 곡선 ──
    print("\n[1] 곡선 파라미터...")
    curve = Curve(GRUMPKIN)
    evaluator = Evaluator(GRUMPKIN)
    g = curve.generator
    print(f"    생성자 G = (x={g[0].n}, y={g[1].n})")
    print(f"    G 곡선 위: {'✓' if curve.is_on_curve(g) else '✗'}")

    # ── 2. 점 연산 ──
    print("\n[2] 점 연산 합성...")
    synth = Synthesizer(curve)
    p1 = synth.load_point(g)
    p2 = synth.double(p1)
    p3 = synth.conditional_add(p2, p1, 1)   # 3G
    p4 = synth.conditional_add(p3, p1, 0)   # 3G 그대로
    print(f"    2G 일치: {'✓' if p2.value == curve.double(g) else '✗'}")
    print(f"    3G 일치: {'✓' if p3.value == curve.scalar_mul(g, 3) else '✗'}")
    print(f"    cond=0 → 입력 유지: {'✓' if p4.value == p3.value else '✗'}")

    # ── 3. 필드 연산 ──
    print("\n[3] 필드 연산 합성...")
    s = synth.field_add(5, 7)
    m = synth.field_mul(s, 3)
    cells = synth.partial_bit_decompose([1, 0, 1, 1], 45)
    print(f"    5 + 7 = {s.value.n}")
    print(f"    12 · 3 = {m.value.n}")
    print(f"    45 = 1 + 0·2 + 1·4 + 1·8 + 16·{cells[5].value.n}")

    # ── 4. 스칼라 곱 ──
    print("\n[4] 스칼라 곱 합성...")
    start = len(synth.trace)
    scalar = 0xC0FFEE
    q = synth.point_mul(g, scalar)
    print(f"    사용한 행 수: {len(synth.trace) - start}")
    print(f"    s·G 일치: {'✓' if q.value == curve.scalar_mul(g, scalar) else '✗'}")

    # ── 5. 마무리 및 검사 ──
    print("\n[5] 트레이스 마무리 및 검사...")
    used = len(synth.trace)
    columns = synth.trace.finalize()
    windows = evaluator.windows(synth.trace)
    counts = {op: 0 for op in Opcode}
    for w in windows:
        counts[w.opcode] += 1
    print(f"    행 수: {used} → 패딩 후 {len(columns['a'])}")
    for op, count in counts.items():
        print(f"      {op.value:<24} {count}")
    failures = evaluator.check_all(synth.trace)
    copies = evaluator.check_copy_constraints(synth.trace)
    result = not failures and not copies
    print(f"    게이트 검사: {'성공 ✓' if not failures else f'실패 ✗ ({len(failures)})'}")
    print(f"    복사 제약 검사: {'성공 ✓' if not copies else f'실패 ✗ ({len(copies)})'}")

    # ── 6. 조작된 트레이스 ──
    # 3G의 y 좌표를 바꾸면 공선성 잔차가 0이 아니게 된다.
    print("\n[6] 조작된 트레이스 검사 (3G의 y 좌표 변조)...")
    row = synth.trace.row(p3.y.cell.row)
    row.b = row.b + curve.field(1)
    tampered = evaluator.check_all(synth.trace)
    print(f"    실패한 윈도우: {sorted({offset for offset, _ in tampered})}")

    print("\n" + "=" * 60)
    if result and tampered:
        print("  데모 완료: 모든 테스트 통과!")
    else:
        print("  데모 완료: 일부 테스트 실패")
    print("=" * 60)

    return result


if __name__ == "__main__":
    main()
