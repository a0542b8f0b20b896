import typing
from typing import Any, Callable, Dict, List

from metanode_deployment.exceptions import DeploymentError, RemoteCallFailed

StepFunction = Callable[[Dict[str, Any]], Any]


class Step(typing.NamedTuple):
    name: str
    function: StepFunction
    remote: bool


class Pipeline:
    """
    Ordered sequence of named steps sharing a results dictionary.

    Each step receives the results of the steps before it. Execution stops at
    the first step that raises; failures of remote (on-chain) steps are reported
    as RemoteCallFailed with the step name.
    """

    def __init__(self, name: str):
        self.name = name
        self.steps: List[Step] = list()
        self.completed: List[str] = list()

    def remote(self, name: str, function: StepFunction) -> "Pipeline":
        """Adds a step that talks to the chain."""
        return self._add(Step(name=name, function=function, remote=True))

    def local(self, name: str, function: StepFunction) -> "Pipeline":
        """Adds a step that only touches local state (e.g. files)."""
        return self._add(Step(name=name, function=function, remote=False))

    def _add(self, step: Step) -> "Pipeline":
        if any(existing.name == step.name for existing in self.steps):
            raise ValueError(f"Duplicate step '{step.name}' in pipeline {self.name}")
        self.steps.append(step)
        return self

    def run(self) -> Dict[str, Any]:
        results = dict()
        self.completed = list()
        total = len(self.steps)
        print(f"\nRunning {self.name} ({total} steps)")
        for position, step in enumerate(self.steps, start=1):
            print(f"[{position}/{total}] {step.name}")
            try:
                results[step.name] = step.function(results)
            except DeploymentError:
                raise
            except Exception as e:
                if not step.remote:
                    raise
                raise RemoteCallFailed(step=step.name, cause=e) from e
            self.completed.append(step.name)
        return results
