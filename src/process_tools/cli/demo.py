"""Cancel, wait, force-abort demonstration.

The demo work receives everything it needs through an explicit
``DemoParameters`` argument at start time; it reads its cancellation token
from the worker it runs on.
"""

import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from ..core.config import DemoConfig
from ..core.worker import DEFAULT_ABORT_GRACE, TerminableWorker, current_token
from ..errors.exceptions import OperationCancelledError


@dataclass(frozen=True)
class DemoParameters:
    """Explicit inputs of the demo work."""
    echo: Callable[[str], None]
    user_object: Optional[str] = None
    cooperative: bool = True
    tick: float = 2.0


def demo_work(params: DemoParameters) -> None:
    """Loop forever, reporting progress, until cancelled or aborted."""
    token = current_token()
    worker = TerminableWorker.current()
    name = worker.name if worker is not None else "demo"

    if params.user_object is None:
        params.echo("no UserObject")
    else:
        params.echo(f"UserObject is '{params.user_object}'")

    try:
        while True:
            if params.cooperative:
                token.raise_if_cancelled()
            params.echo(f"{name} still running")
            if params.cooperative:
                token.wait(params.tick)
            else:
                time.sleep(params.tick)
    except OperationCancelledError:
        params.echo(f"{name} finishing because cancellation was requested.")
        raise


def run_demo(
    config: DemoConfig,
    echo: Callable[[str], None],
    abort_grace: float = DEFAULT_ABORT_GRACE,
    sleep: Callable[[float], None] = time.sleep,
) -> TerminableWorker:
    """
    Start the demo worker, cancel it cooperatively, and force it if needed.

    Returns:
        The finished (or, if even the abort failed, still running) worker
    """
    params = DemoParameters(
        echo=echo,
        user_object=config.user_object,
        cooperative=config.cooperative,
        tick=config.tick,
    )

    if config.parameterized:
        worker = TerminableWorker(
            parameterized_target=demo_work, name="DemoThread", abort_grace=abort_grace
        )
    else:
        niladic_params = replace(params, user_object=None)
        worker = TerminableWorker(
            target=lambda: demo_work(niladic_params), name="DemoThread", abort_grace=abort_grace
        )

    echo(f"Main: starting {worker.name}...")
    if config.parameterized:
        worker.start(params)
    else:
        worker.start()

    sleep(config.run_before_cancel)
    echo(f"Main: trying to stop {worker.name} cooperatively...")
    worker.request_cooperative_cancel()

    if worker.wait_until_finished(config.cooperative_wait):
        echo(f"Main: stopped {worker.name} successfully in a cooperative way.")
        return worker

    echo(f"Main: {worker.name} is still alive - trying to kill it...")
    worker.force_abort()
    if worker.wait_until_finished(config.abort_wait):
        echo(f"Main: {worker.name} has been stopped by brute force.")
        if worker.last_error is not None:
            echo(f"Main: {type(worker.last_error).__name__}: {worker.last_error}")
    else:
        echo(f"Main: {worker.name} could not be stopped; it is blocked outside Python code.")
    return worker
