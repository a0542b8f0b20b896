import pytest

from metanode_deployment.exceptions import DeploymentError, RemoteCallFailed
from metanode_deployment.pipeline import Pipeline


def test_steps_run_in_order_with_previous_results():
    order = list()

    def first(results):
        order.append("first")
        return 1

    def second(results):
        order.append("second")
        return results["first"] + 1

    pipeline = Pipeline("test").remote("first", first).local("second", second)
    results = pipeline.run()

    assert order == ["first", "second"]
    assert results == {"first": 1, "second": 2}
    assert pipeline.completed == ["first", "second"]


def test_remote_failure_short_circuits():
    written = list()

    def fail(results):
        raise RuntimeError("execution reverted")

    pipeline = (
        Pipeline("test")
        .remote("deploy", lambda results: "contract")
        .remote("upgrade", fail)
        .local("write", lambda results: written.append(True))
    )
    with pytest.raises(RemoteCallFailed) as exc_info:
        pipeline.run()

    assert exc_info.value.step == "upgrade"
    assert isinstance(exc_info.value.cause, RuntimeError)
    assert pipeline.completed == ["deploy"]
    assert written == []


def test_local_failures_are_not_wrapped():
    def fail(results):
        raise OSError("disk full")

    pipeline = Pipeline("test").local("write", fail)
    with pytest.raises(OSError):
        pipeline.run()


def test_deployment_errors_propagate_unchanged():
    class Violation(DeploymentError):
        pass

    def fail(results):
        raise Violation("bad proxy")

    pipeline = Pipeline("test").remote("check", fail)
    with pytest.raises(Violation):
        pipeline.run()


def test_duplicate_step_names_rejected():
    pipeline = Pipeline("test").remote("deploy", lambda results: None)
    with pytest.raises(ValueError):
        pipeline.local("deploy", lambda results: None)
