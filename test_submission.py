"""Tests for the simulate/sign/send/confirm pipeline."""

import pytest
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer

from dominion.errors import (
    ConfirmationTimeoutError,
    SendError,
    SimulationError,
    TransactionFailedError,
    TransactionTooLargeError,
    WalletNotConnectedError,
)
from dominion.services import SubmissionPipeline


def transfers(wallet, count: int = 1):
    return [
        transfer(
            TransferParams(
                from_pubkey=wallet.public_key,
                to_pubkey=Pubkey.new_unique(),
                lamports=1000 + i,
            )
        )
        for i in range(count)
    ]


async def no_sleep(_):
    return None


async def test_submit_returns_confirmed_signature(node, datasource, connected_wallet):
    pipeline = SubmissionPipeline(datasource, sleep=no_sleep)
    signature = await pipeline.submit(transfers(connected_wallet), connected_wallet)

    assert len(node.sent) == 1
    assert signature == str(node.sent[0].signatures[0])
    assert node.sent[0].message.account_keys[0] == connected_wallet.public_key
    assert node.calls == [
        "getLatestBlockhash",
        "simulateTransaction",
        "sendTransaction",
        "getSignatureStatuses",
    ]


async def test_submit_without_simulation(node, datasource, connected_wallet):
    pipeline = SubmissionPipeline(datasource, sleep=no_sleep)
    await pipeline.submit(transfers(connected_wallet), connected_wallet, simulate=False)

    assert "simulateTransaction" not in node.calls


async def test_simulation_error_stops_before_send(node, datasource, connected_wallet):
    node.simulation_err = {"InstructionError": [0, {"Custom": 1}]}
    pipeline = SubmissionPipeline(datasource, sleep=no_sleep)

    with pytest.raises(SimulationError) as exc_info:
        await pipeline.submit(transfers(connected_wallet), connected_wallet)

    assert exc_info.value.user_message == "Transaction would fail. Please try again."
    assert node.sent == []


async def test_oversized_transaction_rejected(node, datasource, connected_wallet):
    pipeline = SubmissionPipeline(datasource, sleep=no_sleep)

    with pytest.raises(TransactionTooLargeError):
        await pipeline.submit(transfers(connected_wallet, 40), connected_wallet)

    assert "sendTransaction" not in node.calls


async def test_failed_transaction(node, datasource, connected_wallet):
    node.signature_status = {"confirmationStatus": "confirmed", "err": {"InstructionError": [1, "x"]}}
    pipeline = SubmissionPipeline(datasource, sleep=no_sleep)

    with pytest.raises(TransactionFailedError) as exc_info:
        await pipeline.submit(transfers(connected_wallet), connected_wallet)

    assert exc_info.value.user_message == "Transaction failed. Please try again."


async def test_expired_blockhash(node, datasource, connected_wallet):
    node.signature_status = None
    node.block_height = node.last_valid_height + 1
    pipeline = SubmissionPipeline(datasource, sleep=no_sleep)

    with pytest.raises(ConfirmationTimeoutError):
        await pipeline.submit(transfers(connected_wallet), connected_wallet)


async def test_confirm_timeout(node, datasource, connected_wallet):
    node.signature_status = None
    pipeline = SubmissionPipeline(datasource, confirm_timeout=0, sleep=no_sleep)

    with pytest.raises(ConfirmationTimeoutError):
        await pipeline.submit(transfers(connected_wallet), connected_wallet)


async def test_confirm_polls_until_confirmed(node, datasource):
    statuses = [None, {"confirmationStatus": "processed", "err": None},
                {"confirmationStatus": "finalized", "err": None}]
    sleeps = []

    async def record_sleep(delay):
        sleeps.append(delay)
        node.signature_status = statuses.pop(0) if statuses else node.signature_status

    node.signature_status = statuses.pop(0)
    pipeline = SubmissionPipeline(datasource, poll_interval=0.5, sleep=record_sleep)
    await pipeline.confirm("sig", node.last_valid_height)

    assert sleeps == [0.5, 0.5]


async def test_disconnected_wallet(datasource, wallet):
    pipeline = SubmissionPipeline(datasource, sleep=no_sleep)

    with pytest.raises(WalletNotConnectedError):
        await pipeline.submit([], wallet)


async def test_rejected_send_surfaces_generic_error(node, datasource, connected_wallet):
    node.fail_methods.add("sendTransaction")
    pipeline = SubmissionPipeline(datasource, sleep=no_sleep)

    with pytest.raises(SendError) as exc_info:
        await pipeline.submit(transfers(connected_wallet), connected_wallet)

    assert exc_info.value.user_message == "Transaction failed. Please try again."
    assert "getSignatureStatuses" not in node.calls


async def test_rate_limited_send_is_not_retried(node, datasource, connected_wallet):
    node.http_status["sendTransaction"] = 429
    pipeline = SubmissionPipeline(datasource, sleep=no_sleep)

    with pytest.raises(SendError):
        await pipeline.submit(transfers(connected_wallet), connected_wallet)

    assert node.calls.count("sendTransaction") == 1


async def test_node_http_error_before_send(node, datasource, connected_wallet):
    node.http_status["getLatestBlockhash"] = 500
    pipeline = SubmissionPipeline(datasource, sleep=no_sleep)

    with pytest.raises(SendError):
        await pipeline.submit(transfers(connected_wallet), connected_wallet)

    assert node.sent == []
