"""
병렬 합성 / 검사 도우미
========================

모든 관계식은 서로 독립인 윈도우 위의 순수 함수이므로, 큰 회로의 윈도우 수천 개는
스레드 풀로 나눠 합성하거나 검사할 수 있다.

**합성**:
  1. 호출 스레드가 요청 순서대로 trace.reserve()로 행 범위를 원자적으로 예약
  2. 작업 스레드가 witness를 계산해 자기 범위만 채우고 (fill) 입력 셀과의 복사 제약을 남김
  3. 실패한 요청은 범위를 no-op 행으로 비우고 (abandon) 오류를 모은다
  → 예약 순서가 고정되므로 결과 트레이스의 레이아웃은 스레드 스케줄과 무관하다.

**일괄 역원**:
  한 배치 안의 누적/역대입은 순서가 정해져 있으므로 배치 단위로만 병렬화한다.
"""

from concurrent.futures import ThreadPoolExecutor

from ecgate.errors import GateError
from ecgate.field import batch_invert
from ecgate.layout import Opcode
from ecgate.synthesizer import OUTPUT_ROWS


def synthesize_parallel(synth, requests, max_workers=4):
    """(opcode, args) 요청들을 각자 예약한 윈도우에 병렬로 합성한다.

    순차 합성과 같은 트레이스를 만든다:
      - 배정된 입력(AssignedCell / AssignedPoint)은 복사 제약으로 이어진다
      - CONDITIONAL_ADD / DOUBLE 요청은 출력점의 ON_CURVE 윈도우를 바로 뒤에 함께 예약한다

    Args:
        synth: Synthesizer
        requests: [(Opcode, args 튜플), ...]
        max_workers: 스레드 수

    Returns:
        list[int]: 요청별 window index (head 행 offset)

    Raises:
        GateError: 실패한 요청 중 첫 번째 것의 오류 (window index, opcode 포함).
            실패한 요청의 윈도우는 no-op 행이 되고, 다른 요청의 윈도우는 그대로 기록된다.
    """
    plans = []
    for opcode, _ in requests:
        reservation = synth.trace.reserve(opcode)
        check = synth.trace.reserve(Opcode.ON_CURVE) if opcode in OUTPUT_ROWS else None
        plans.append((reservation, check))

    def abandon(reservations):
        for r in reservations:
            if r is not None and not r.done:
                r.abandon()

    def fill(reservation, check, args):
        opcode = reservation.opcode
        try:
            rows = synth.witness(opcode, *args)
            reservation.fill(rows)
            synth.link(reservation.start, synth.sources(opcode, *args))
            if check is not None:
                check.fill([rows[OUTPUT_ROWS[opcode]]])
                synth.link_output(reservation.start, opcode, check.start)
        except GateError as err:
            abandon((reservation, check))
            return err.at(reservation.start, opcode)
        except Exception:
            abandon((reservation, check))
            raise
        return None

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [
            executor.submit(fill, reservation, check, args)
            for (reservation, check), (_, args) in zip(plans, requests)
        ]
        errors = [f.result() for f in futures]

    for err in errors:
        if err is not None:
            raise err
    return [reservation.start for reservation, _ in plans]


def check_all_parallel(trace, evaluator, max_workers=4, chunk_size=256):
    """evaluator.check_all(trace)와 같은 결과를 스레드 풀로 계산한다."""
    windows = evaluator.windows(trace)
    chunks = [windows[i:i + chunk_size] for i in range(0, len(windows), chunk_size)]

    failures = []
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(evaluator.check_windows, chunk) for chunk in chunks]
        for f in futures:
            failures.extend(f.result())
    return failures


def batch_invert_parallel(batches, max_workers=4):
    """서로 독립인 배치들을 각각 batch_invert 한다 (배치 순서 유지)."""
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(batch_invert, batches))
