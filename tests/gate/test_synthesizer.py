"""
Witness synthesizer tests: ecgate/synthesizer.py

합성한 트레이스는 항상 Evaluator.check_all 과 check_copy_constraints 를 통과해야 한다.
"""
import pytest

from ecgate.curve import GRUMPKIN, Curve, CurveParams
from ecgate.errors import (
    InvalidCondition, InvalidDoubling, InvalidPoint, RangeError, VerticalLine,
)
from ecgate.evaluator import Evaluator
from ecgate.field import CURVE_ORDER, FR, make_field
from ecgate.layout import Opcode
from ecgate.synthesizer import AssignedCell, AssignedPoint, Synthesizer
from ecgate.trace import Cell, Trace


def opcodes(evaluator, trace):
    return [w.opcode for w in evaluator.windows(trace)]


def assert_valid(evaluator, trace):
    assert evaluator.check_all(trace) == []
    assert evaluator.check_copy_constraints(trace) == []


# =====================================================================
# 점 배정
# =====================================================================

class TestOnCurve:
    def test_load_point(self, synth17, evaluator17):
        p = synth17.load_point((2, 5))
        assert isinstance(p, AssignedPoint)
        assert p.value == (FR(2), FR(5))
        assert p.x.cell == Cell(0, "a")
        assert p.y.cell == Cell(0, "b")
        assert opcodes(evaluator17, synth17.trace) == [Opcode.ON_CURVE]
        assert_valid(evaluator17, synth17.trace)

    def test_invalid_point(self, synth17):
        synth17.load_point((2, 5))
        with pytest.raises(InvalidPoint) as excinfo:
            synth17.load_point((2, 6))
        assert excinfo.value.window_index == 1
        assert excinfo.value.opcode is Opcode.ON_CURVE
        assert len(synth17.trace) == 1

    def test_identity_rejected(self, synth17):
        with pytest.raises(InvalidPoint):
            synth17.on_curve(None)
        assert len(synth17.trace) == 0

    def test_allow_invalid(self, synth17, evaluator17):
        synth17.on_curve((2, 6), allow_invalid=True)
        failures = evaluator17.check_all(synth17.trace)
        assert [offset for offset, _ in failures] == [0]

    def test_reassign_adds_copy_constraint(self, synth17, evaluator17):
        p = synth17.load_point((2, 5))
        q = synth17.on_curve(p)
        assert synth17.trace.copy_constraints == [
            (Cell(0, "a"), Cell(1, "a")),
            (Cell(0, "b"), Cell(1, "b")),
        ]
        assert q.value == p.value
        assert_valid(evaluator17, synth17.trace)


# =====================================================================
# 덧셈 / 배가
# =====================================================================

class TestConditionalAdd:
    def test_add_vector(self, synth17, evaluator17):
        p3 = synth17.add((2, 5), (4, 9))
        assert p3.value == (FR(-2), FR(3))
        assert opcodes(evaluator17, synth17.trace) == [Opcode.CONDITIONAL_ADD, Opcode.ON_CURVE]
        assert_valid(evaluator17, synth17.trace)

    def test_output_cells(self, synth17):
        p3 = synth17.conditional_add((2, 5), (4, 9), 1)
        assert p3.x.cell == Cell(3, "a")
        assert p3.y.cell == Cell(3, "b")

    def test_cond_zero(self, synth17, evaluator17):
        p3 = synth17.conditional_add((2, 5), (4, 9), 0)
        assert p3.value == (FR(2), FR(5))
        assert_valid(evaluator17, synth17.trace)

    def test_chained_with_copy_constraints(self, synth17, evaluator17):
        p = synth17.load_point((2, 5))
        q = synth17.load_point((4, 9))
        r = synth17.add(p, q)
        s = synth17.add(r, (-1, 4))
        assert s.value == (FR(4), FR(-9))
        assert len(synth17.trace.copy_constraints) >= 6
        assert_valid(evaluator17, synth17.trace)

    def test_invalid_condition(self, synth17):
        synth17.load_point((2, 5))
        with pytest.raises(InvalidCondition) as excinfo:
            synth17.conditional_add((2, 5), (4, 9), 2)
        assert excinfo.value.window_index == 1
        assert excinfo.value.opcode is Opcode.CONDITIONAL_ADD
        assert len(synth17.trace) == 1

    def test_off_curve_input(self, synth17):
        with pytest.raises(InvalidPoint):
            synth17.add((2, 6), (4, 9))
        assert len(synth17.trace) == 0

    def test_same_point(self, synth17):
        with pytest.raises(VerticalLine) as excinfo:
            synth17.add((2, 5), (2, 5))
        assert excinfo.value.opcode is Opcode.CONDITIONAL_ADD
        assert len(synth17.trace) == 0

    def test_inverse_points(self, synth17):
        with pytest.raises(VerticalLine):
            synth17.add((2, 5), (2, -5))
        assert len(synth17.trace) == 0

    def test_tampered_output_detected(self, synth17, evaluator17):
        synth17.load_point((2, 5))
        p3 = synth17.add((2, 5), (4, 9))
        row = synth17.trace.row(p3.y.cell.row)
        row.b = row.b + FR(1)
        failures = evaluator17.check_all(synth17.trace)
        assert {offset for offset, _ in failures} == {1}
        assert evaluator17.check_copy_constraints(synth17.trace) == [
            (Cell(4, "b"), Cell(5, "b")),
        ]


class TestDouble:
    def test_double_vector(self, synth17, evaluator17):
        p = synth17.double((-2, 3))
        assert p.value == (FR(8), FR(-23))
        assert opcodes(evaluator17, synth17.trace) == [Opcode.DOUBLE, Opcode.ON_CURVE]
        assert_valid(evaluator17, synth17.trace)

    def test_double_chain(self, synth17, evaluator17, curve17):
        p = synth17.load_point((2, 5))
        q = synth17.double(synth17.double(p))
        assert q.value == curve17.scalar_mul(curve17.point(2, 5), 4)
        assert_valid(evaluator17, synth17.trace)

    def test_two_torsion(self):
        synth = Synthesizer(Curve(CurveParams(CURVE_ORDER, -8)))
        with pytest.raises(InvalidDoubling) as excinfo:
            synth.double((2, 0))
        assert excinfo.value.opcode is Opcode.DOUBLE
        assert len(synth.trace) == 0

    def test_identity_rejected(self, synth17):
        with pytest.raises(InvalidPoint):
            synth17.double(None)


# =====================================================================
# 비트 분해 / 필드 연산
# =====================================================================

class TestPartialBitDecompose:
    def test_solves_remainder(self, synth17, evaluator17):
        cells = synth17.partial_bit_decompose([1, 0, 1, 1], 45)
        assert [c.value.n for c in cells] == [1, 0, 1, 1, 45, 2]
        assert_valid(evaluator17, synth17.trace)

    def test_non_integral_remainder_still_satisfies(self, synth17, evaluator17):
        # 46 - 13 = 33 은 16으로 나누어떨어지지 않지만 필드 안에서는 풀린다
        cells = synth17.partial_bit_decompose([1, 0, 1, 1], 46)
        assert cells[5].value * FR(16) == FR(33)
        assert_valid(evaluator17, synth17.trace)

    def test_non_boolean_bit(self, synth17):
        synth17.field_add(1, 2)
        with pytest.raises(RangeError) as excinfo:
            synth17.partial_bit_decompose([1, 2, 0, 0], 5)
        assert excinfo.value.window_index == 2
        assert excinfo.value.opcode is Opcode.PARTIAL_BIT_DECOMPOSE
        assert len(synth17.trace) == 2

    def test_wrong_bit_count(self, synth17):
        with pytest.raises(RangeError):
            synth17.partial_bit_decompose([1, 0, 1], 5)
        assert len(synth17.trace) == 0


class TestFieldOps:
    def test_add_and_mul(self, small_curve):
        synth = Synthesizer(small_curve)
        F = small_curve.field
        s = synth.field_add(5, 7)
        m = synth.field_mul(5, 7)
        assert isinstance(s, AssignedCell)
        assert s.value == F(12)
        assert m.value == F(35)
        assert s.cell == Cell(1, "a")
        assert_valid(Evaluator(small_curve.params), synth.trace)

    def test_wraps_modulus(self, small_curve):
        synth = Synthesizer(small_curve)
        assert synth.field_mul(10000, 2).value == small_curve.field(9993)
        assert synth.field_add(10000, 10).value == small_curve.field(3)

    def test_chained_cells(self, small_curve):
        synth = Synthesizer(small_curve)
        s = synth.field_add(5, 7)
        m = synth.field_mul(s, s)
        assert m.value == small_curve.field(144)
        assert synth.trace.copy_constraints == [
            (Cell(1, "a"), Cell(2, "a")),
            (Cell(1, "a"), Cell(2, "b")),
        ]
        assert_valid(Evaluator(small_curve.params), synth.trace)


class TestDecompose:
    def test_two_windows(self, synth17, evaluator17):
        bits, head = synth17.decompose(0xAB, 8)
        assert [b.value.n for b in bits] == [1, 1, 0, 1, 0, 1, 0, 1]
        assert head.value == FR(0xAB)
        assert opcodes(evaluator17, synth17.trace) == [Opcode.PARTIAL_BIT_DECOMPOSE] * 2
        # 첫 윈도우의 y3 → 둘째 윈도우의 x3
        assert synth17.trace.copy_constraints == [(Cell(2, "b"), Cell(5, "a"))]
        assert synth17.trace.value(Cell(5, "b")) == FR(0)
        assert_valid(evaluator17, synth17.trace)

    def test_out_of_range(self, synth17):
        with pytest.raises(RangeError) as excinfo:
            synth17.decompose(256, 8)
        assert excinfo.value.opcode is Opcode.PARTIAL_BIT_DECOMPOSE
        assert len(synth17.trace) == 0

    def test_bits_not_multiple_of_window(self, synth17):
        with pytest.raises(RangeError):
            synth17.decompose(3, 6)

    def test_too_wide_for_field(self, small_curve):
        synth = Synthesizer(small_curve)
        with pytest.raises(RangeError):
            synth.decompose(5, 16)

    def test_decompose_scalar_reconstructs(self, synth17, evaluator17):
        s = CURVE_ORDER + 12345
        bits = synth17.decompose_scalar(s)
        assert len(bits) == 256
        assert sum(b.value.n << i for i, b in enumerate(bits)) == s
        assert len(evaluator17.windows(synth17.trace)) == 64
        assert_valid(evaluator17, synth17.trace)

    def test_decompose_scalar_out_of_range(self, synth17):
        with pytest.raises(RangeError):
            synth17.decompose_scalar(1 << 256)
        with pytest.raises(RangeError):
            synth17.decompose_scalar(-1)


# =====================================================================
# 스칼라 곱
# =====================================================================

class TestPointMul:
    @pytest.mark.parametrize("k", [1, 2, 11, 0xC0FFEE])
    def test_matches_scalar_mul(self, grumpkin, k):
        synth = Synthesizer(grumpkin)
        g = grumpkin.generator
        q = synth.point_mul(g, k)
        assert q.value == grumpkin.scalar_mul(g, k)
        assert_valid(Evaluator(GRUMPKIN), synth.trace)

    def test_assigned_base(self, grumpkin):
        synth = Synthesizer(grumpkin)
        base = synth.load_point(grumpkin.generator)
        q = synth.point_mul(base, 6)
        assert q.value == grumpkin.scalar_mul(grumpkin.generator, 6)
        assert_valid(Evaluator(GRUMPKIN), synth.trace)

    def test_zero_scalar(self, grumpkin):
        synth = Synthesizer(grumpkin)
        with pytest.raises(InvalidPoint):
            synth.point_mul(grumpkin.generator, 0)
        assert len(synth.trace) == 0

    def test_scalar_equal_to_order(self, grumpkin):
        synth = Synthesizer(grumpkin)
        with pytest.raises(InvalidPoint) as excinfo:
            synth.point_mul(grumpkin.generator, GRUMPKIN.order)
        assert excinfo.value.window_index == 0
        assert len(synth.trace) == 0

    def test_scalar_reduced_modulo_order(self, grumpkin):
        g = grumpkin.generator
        synth = Synthesizer(grumpkin)
        q = synth.point_mul(g, GRUMPKIN.order + 2)
        assert q.value == grumpkin.scalar_mul(g, 2)
        assert_valid(Evaluator(GRUMPKIN), synth.trace)

        reference = Synthesizer(grumpkin)
        reference.point_mul(g, 2)
        assert len(synth.trace) == len(reference.trace)

    def test_unknown_order_not_reduced(self, synth17, evaluator17, curve17):
        p = curve17.point(2, 5)
        q = synth17.point_mul(p, 13)
        assert q.value == curve17.scalar_mul(p, 13)
        assert_valid(evaluator17, synth17.trace)

    def test_gate_expressions_vanish(self, grumpkin):
        synth = Synthesizer(grumpkin)
        synth.point_mul(grumpkin.generator, 5)
        synth.trace.finalize()
        evaluator = Evaluator(GRUMPKIN)
        n = len(synth.trace)
        for i in range(n):
            rows = [synth.trace.row(j) for j in range(i, min(i + 4, n))]
            terms = evaluator.gate_expressions(rows, synth.trace.row(i).selectors)
            assert all(t.n == 0 for t in terms)


# =====================================================================
# 기타
# =====================================================================

class TestSynthesizer:
    def test_field_mismatch(self, curve17):
        with pytest.raises(ValueError):
            Synthesizer(curve17, Trace(make_field(10007)))

    def test_shared_trace(self, curve17, evaluator17):
        trace = Trace(FR)
        Synthesizer(curve17, trace).load_point((2, 5))
        Synthesizer(curve17, trace).load_point((4, 9))
        assert len(trace) == 2
        assert_valid(evaluator17, trace)

    def test_witness_is_pure(self, synth17):
        rows = synth17.witness(Opcode.FIELD_MUL, 5, 7)
        assert rows[1][0] == FR(35)
        assert len(synth17.trace) == 0

    def test_sources_follow_assigned_inputs(self, synth17):
        p = synth17.load_point((2, 5))
        bit = synth17.partial_bit_decompose([1, 0, 0, 0], 1)[0]
        sources = synth17.sources(Opcode.CONDITIONAL_ADD, p, (4, 9), bit)
        assert [(row, column, s.cell) for row, column, s in sources if s is not None] == [
            (0, "a", Cell(0, "a")),
            (0, "b", Cell(0, "b")),
            (2, "a", Cell(1, "a")),
        ]
        assert all(s is None for _, _, s in synth17.sources(Opcode.FIELD_ADD, 1, 2))

    def test_pad(self, synth17, evaluator17):
        synth17.field_add(1, 2)
        synth17.pad(3)
        synth17.field_mul(2, 3)
        assert len(synth17.trace) == 7
        assert [w.offset for w in evaluator17.windows(synth17.trace)] == [0, 5]
        assert_valid(evaluator17, synth17.trace)
