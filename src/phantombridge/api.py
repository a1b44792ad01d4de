"""User-facing API entrypoints for phantombridge."""

from collections.abc import Sequence

from phantombridge.runtime import DEFAULT_READY_TIMEOUT
from phantombridge.runtime import Process


def open_process(
    bin_path: str | None = None,
    port: int = 0,
    engine_args: Sequence[str] = (),
    offline_storage_path: str | None = None,
    offline_storage_quota: int | None = None,
    ready_timeout: float = DEFAULT_READY_TIMEOUT,
    call_timeout: float | None = None,
) -> Process:
    """Start an engine process and return it once its control endpoint answers.

    :param bin_path: Engine executable; defaults to ``$PHANTOMJS_BIN`` or ``phantomjs``.
    :param port: Control port, or ``0`` to pick a free one.
    :param engine_args: Extra engine command-line options.
    :param offline_storage_path: Directory used verbatim as the offline storage location.
    :param offline_storage_quota: Offline storage quota in kilobytes.
    :param ready_timeout: Seconds to wait for the engine to become ready.
    :param call_timeout: Optional per-call timeout in seconds.
    :returns: An open process; close it with :meth:`Process.close` or a ``with`` block.
    """
    process: Process = Process(
        bin_path=bin_path,
        port=port,
        engine_args=engine_args,
        offline_storage_path=offline_storage_path,
        offline_storage_quota=offline_storage_quota,
        ready_timeout=ready_timeout,
        call_timeout=call_timeout,
    )
    process.open()
    return process
