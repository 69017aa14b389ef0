"""
Plan execution.

Runs the models of an execution plan through the injected engine with
dynamic parallelism: a model is dispatched as soon as every model it reads
from has succeeded, up to ``max_workers`` at a time. Ready models are
dispatched in plan order, so ``max_workers=1`` reproduces the plan exactly.
"""

from __future__ import annotations

import asyncio
import inspect
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from tmql_orchestration.core.execution.config import RunOptions
from tmql_orchestration.core.execution.engine import (
    EngineLike,
    ExecutionRequest,
    engine_callable,
    is_async_engine,
    normalize_outcome,
)
from tmql_orchestration.core.model import Model
from tmql_orchestration.core.results import ModelRunStats, ModelStatus, RunResult, SkipReason
from tmql_orchestration.core.scheduler import ExecutionPlan
from tmql_orchestration.exceptions import ExecutionError, ModelExecutionError, ModelTimeoutError
from tmql_orchestration.utils.async_utils import dual
from tmql_orchestration.utils.display import format_duration
from tmql_orchestration.utils.logging import get_logger

logger = get_logger("tmql.executor")


class Executor:
    """
    Executes an ExecutionPlan with an injected engine.

    The executor keeps no state between runs: every call to ``execute`` builds
    its own RunResult, so one executor (and one plan) can serve concurrent runs
    as long as the engine tolerates concurrent calls for independent models.

    Attributes:
        engine: Engine object or callable
        options: Default run options
    """

    # How often a blocked run re-checks the cancellation signal (seconds)
    CANCEL_POLL_INTERVAL = 0.05

    def __init__(self, engine: EngineLike, options: RunOptions | None = None):
        self.engine = engine
        self.options = options or RunOptions()
        self._execute = engine_callable(engine)
        self._is_async = is_async_engine(self._execute)

    async def execute(self, plan: ExecutionPlan, options: RunOptions | None = None) -> RunResult:
        """
        Run every model of *plan*.

        Engine failures never propagate: they are captured into the model's
        stats and reflected in ``RunResult.overall_status``. Cancelling the
        awaiting task cancels in-flight models and re-raises CancelledError.

        Args:
            plan: Execution plan (from ``Project.plan()``)
            options: Options for this run (defaults to the executor's)

        Returns:
            A fresh RunResult
        """
        options = options or self.options
        result = RunResult(
            per_model={
                m.name: ModelRunStats(model_name=m.name, output=m.output, materialization=str(m.materialize))
                for m in plan.order
            }
        )
        result.start()
        logger.info(
            f"Running {len(plan)} model(s) with up to {options.max_workers} worker(s) "
            f"[{options.failure_policy.value}]"
        )

        pool = None if self._is_async else ThreadPoolExecutor(
            max_workers=options.max_workers, thread_name_prefix="tmql-model"
        )
        running: dict[asyncio.Task, str] = {}
        try:
            await self._execute_loop(plan, options, result, running, pool)
        except asyncio.CancelledError:
            logger.info("Run cancelled; cancelling in-flight models")
            for task in running:
                task.cancel()
            if running:
                await asyncio.gather(*running, return_exceptions=True)
            result.cancelled = True
            self._skip_remaining(result, SkipReason.CANCELLED)
            result.complete()
            raise
        finally:
            if pool is not None:
                pool.shutdown(wait=False, cancel_futures=True)

        result.complete()
        self._log_summary(result)
        return result

    @dual
    async def run(self, plan: ExecutionPlan, options: RunOptions | None = None) -> RunResult:
        """``execute`` callable from sync code (blocks) or async code (awaitable)."""
        return await self.execute(plan, options)

    async def _execute_loop(
        self,
        plan: ExecutionPlan,
        options: RunOptions,
        result: RunResult,
        running: dict[asyncio.Task, str],
        pool: ThreadPoolExecutor | None,
    ) -> None:
        models: dict[str, Model] = {m.name: m for m in plan.order}
        pending: list[str] = list(plan.model_names)  # kept in plan order
        stats = result.per_model
        halted = False

        while True:
            # Skip anything reading from a failed or skipped model; plan order
            # guarantees upstream models are settled before their dependents here
            for name in list(pending):
                blocked = [
                    d for d in plan.dependencies.get(name, ())
                    if stats[d].status in (ModelStatus.FAILED, ModelStatus.SKIPPED)
                ]
                if blocked:
                    pending.remove(name)
                    stats[name].skip(SkipReason.UPSTREAM_FAILED, blocked)
                    logger.warning(f"Model '{name}' skipped: upstream {', '.join(sorted(blocked))} did not succeed")

            if options.cancelled and not result.cancelled:
                result.cancelled = True
                logger.info(f"Cancellation requested; {len(pending)} model(s) will not be started")

            # Dispatch ready models
            if not halted and not result.cancelled:
                for name in list(pending):
                    if len(running) >= options.max_workers:
                        break
                    deps = plan.dependencies.get(name, ())
                    if all(stats[d].status == ModelStatus.SUCCEEDED for d in deps):
                        pending.remove(name)
                        task = asyncio.create_task(
                            self._run_model(models[name], stats[name], options, pool), name=f"tmql:{name}"
                        )
                        running[task] = name

            if not running:
                if pending:
                    reason = SkipReason.CANCELLED if result.cancelled else SkipReason.RUN_HALTED
                    if not halted and not result.cancelled:
                        # Cannot happen for a validated plan
                        raise ExecutionError(f"Execution stalled with pending models: {', '.join(pending)}")
                    for name in pending:
                        stats[name].skip(reason)
                        logger.warning(f"Model '{name}' skipped: {reason.value.replace('_', ' ')}")
                    pending.clear()
                break

            timeout = self.CANCEL_POLL_INTERVAL if options.cancel_event is not None else None
            done, _ = await asyncio.wait(running, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                name = running.pop(task)
                # _run_model records its own outcome; surface unexpected bugs loudly
                task.result()
                if stats[name].status == ModelStatus.FAILED and options.halts_everything and not halted:
                    halted = True
                    logger.error(f"Fail-fast: halting run after failure of model '{name}'")

    async def _run_model(
        self,
        model: Model,
        stats: ModelRunStats,
        options: RunOptions,
        pool: ThreadPoolExecutor | None,
    ) -> None:
        """Execute one model, retrying up to ``max_attempts``, and record the outcome."""
        stats.start()
        logger.info(f"Model '{model.name}' started ({model.materialize} -> {model.output})")

        error: BaseException | None = None
        abandoned: list[asyncio.Future] = []
        for attempt in range(1, options.max_attempts + 1):
            stats.attempts = attempt
            request = ExecutionRequest.for_model(model, attempt=attempt, cancel_event=options.cancel_event)
            try:
                raw = await self._invoke(request, pool, options.model_timeout, abandoned)
                outcome = normalize_outcome(raw)
            except asyncio.CancelledError:
                stats.fail(ExecutionError("Cancelled during execution"))
                raise
            except TimeoutError as e:
                error = ModelTimeoutError(model.name, options.model_timeout) if options.model_timeout else e
            except Exception as e:
                error = e
            else:
                if outcome.succeeded:
                    stats.succeed(outcome.document_count)
                    count = f", {outcome.document_count} document(s)" if outcome.document_count is not None else ""
                    logger.info(f"Model '{model.name}' succeeded in {format_duration(stats.duration or 0.0)}{count}")
                    return
                error = ModelExecutionError(model.name, outcome.error or "engine reported failure")

            if attempt < options.max_attempts and not options.cancelled:
                logger.warning(
                    f"Model '{model.name}' attempt {attempt}/{options.max_attempts} failed: {error}; retrying"
                )
                if abandoned:
                    # Attempts of one model never overlap
                    logger.debug(f"Model '{model.name}' waiting for its timed-out attempt to return")
                    await asyncio.gather(*abandoned, return_exceptions=True)
                    abandoned.clear()
                if options.retry_delay:
                    await asyncio.sleep(options.retry_delay)
                continue
            break

        stats.fail(error)
        logger.error(
            f"Model '{model.name}' failed after {format_duration(stats.duration or 0.0)}: {stats.error_message}",
            exc_info=error,
        )

    async def _invoke(
        self,
        request: ExecutionRequest,
        pool: ThreadPoolExecutor | None,
        timeout: float | None,
        abandoned: list[asyncio.Future],
    ) -> Any:
        if self._is_async:
            call = self._execute(request)
            value = await asyncio.wait_for(call, timeout) if timeout is not None else await call
        else:
            value = await self._invoke_in_thread(request, pool, timeout, abandoned)
        # A sync callable may still hand back an awaitable
        if inspect.isawaitable(value):
            value = await value
        return value

    async def _invoke_in_thread(
        self,
        request: ExecutionRequest,
        pool: ThreadPoolExecutor | None,
        timeout: float | None,
        abandoned: list[asyncio.Future],
    ) -> Any:
        """
        Run a sync engine call in the pool.

        The timeout covers the engine call only, not the time spent queued
        behind busy pool threads. A timed-out call cannot be interrupted, so
        its future is appended to *abandoned* and left running.
        """
        loop = asyncio.get_running_loop()
        started = asyncio.Event()

        def call() -> Any:
            if not loop.is_closed():
                loop.call_soon_threadsafe(started.set)
            return self._execute(request)

        future = loop.run_in_executor(pool, call)
        if timeout is None:
            return await future

        waiter = asyncio.ensure_future(started.wait())
        try:
            await asyncio.wait({waiter, future}, return_when=asyncio.FIRST_COMPLETED)
            return await asyncio.wait_for(asyncio.shield(future), timeout)
        except TimeoutError:
            abandoned.append(future)
            future.add_done_callback(_consume_result)
            raise
        except asyncio.CancelledError:
            future.cancel()
            raise
        finally:
            waiter.cancel()

    @staticmethod
    def _skip_remaining(result: RunResult, reason: SkipReason) -> None:
        for stats in result.per_model.values():
            if stats.status == ModelStatus.PENDING:
                stats.skip(reason)

    @staticmethod
    def _log_summary(result: RunResult) -> None:
        summary = result.summary()
        parts = [f"{summary['succeeded']}/{summary['total']} models succeeded"]
        if summary["failed"]:
            parts.append(f"{summary['failed']} failed")
        if summary["skipped"]:
            parts.append(f"{summary['skipped']} skipped")
        message = ", ".join(parts) + f" in {format_duration(result.duration or 0.0)}"
        if result.ok:
            logger.info(f"Run completed: {message}")
        else:
            logger.error(f"Run finished with status '{result.overall_status.value}': {message}")


def _consume_result(future: asyncio.Future) -> None:
    # Retrieve the outcome of an abandoned call so asyncio does not report it
    if not future.cancelled():
        future.exception()


@dual
async def execute_plan(
    plan: ExecutionPlan,
    engine: EngineLike,
    options: RunOptions | None = None,
) -> RunResult:
    """
    Execute *plan* with *engine*; works in both sync and async contexts.

    Examples:
        result = execute_plan(project.plan(), engine)          # blocks
        result = await execute_plan(project.plan(), engine)    # inside a loop
    """
    return await Executor(engine, options).execute(plan)


__all__ = ["Executor", "execute_plan"]
