from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Sequence
import logging
import time

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .base import Module
from .. import lazy
from ..errors import ModuleError
from ..lazy import Resolver, StringLike
from ..types import Context, Response

logger = logging.getLogger(__name__)

DEFAULT_CAPABILITIES = ("CAPABILITY_IAM", "CAPABILITY_NAMED_IAM", "CAPABILITY_AUTO_EXPAND")
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_MAX_POLLS = 720

CREATE_COMPLETE = "CREATE_COMPLETE"
CREATE_FAILURES = frozenset(
    {"CREATE_FAILED", "DELETE_COMPLETE", "DELETE_FAILED", "ROLLBACK_FAILED", "ROLLBACK_COMPLETE"}
)
UPDATE_COMPLETE = "UPDATE_COMPLETE"
UPDATE_FAILURES = frozenset({"UPDATE_FAILED", "UPDATE_ROLLBACK_FAILED", "UPDATE_ROLLBACK_COMPLETE"})


class CloudFormationError(Exception):
    pass


class StackNotFoundError(CloudFormationError):
    pass


class NoUpdateError(CloudFormationError):
    pass


class StackWaitError(CloudFormationError):
    def __init__(self, message: str, status: Optional[str] = None):
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class Template:
    """Either an inline template body or a (lazily resolved) template URL."""

    body: Optional[str] = None
    url: Optional[Resolver] = None

    def __post_init__(self) -> None:
        if (self.body is None) == (self.url is None):
            raise ValueError("cloudformation template needs exactly one of body or url")

    @classmethod
    def from_file(cls, path: Path) -> "Template":
        return cls(body=Path(path).read_text())

    def as_params(self, context: Context) -> dict[str, str]:
        if self.body is None:
            return {"TemplateURL": self.url.resolve(context)}
        return {"TemplateBody": self.body}


@dataclass
class StackOutputs:
    outputs: dict[str, str]

    @classmethod
    def from_stack(cls, stack: dict[str, Any]) -> Optional["StackOutputs"]:
        raw = stack.get("Outputs")
        if raw is None:
            return None
        outputs = {
            item["OutputKey"]: item["OutputValue"]
            for item in raw
            if "OutputKey" in item and "OutputValue" in item
        }
        return cls(outputs=outputs)


class StackWaiter:
    """Polls a stack until it reaches ``success`` or gives up.

    Statuses in ``failures`` end the wait with an error, ``*_IN_PROGRESS``
    statuses are polled again after ``interval`` seconds, and any other status
    fails immediately. ``max_polls`` bounds the number of describe calls;
    ``None`` removes the bound.
    """

    def __init__(
        self,
        describe: Callable[[str], dict[str, Any]],
        *,
        success: str,
        failures: frozenset[str],
        interval: float = DEFAULT_POLL_INTERVAL,
        max_polls: Optional[int] = DEFAULT_MAX_POLLS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.describe = describe
        self.success = success
        self.failures = failures
        self.interval = interval
        self.max_polls = max_polls
        self.sleep = sleep

    def wait(self, stack_name: str) -> dict[str, Any]:
        polls = 0
        while True:
            stack = self.describe(stack_name)
            polls += 1
            status = stack.get("StackStatus", "")
            logger.debug("stack=%s status=%s poll=%s", stack_name, status, polls)
            if status == self.success:
                return stack
            if status in self.failures:
                raise StackWaitError(status, status)
            if not status.endswith("_IN_PROGRESS"):
                raise StackWaitError(f"unexpected stack status {status or '<none>'}", status)
            if self.max_polls is not None and polls >= self.max_polls:
                raise StackWaitError(
                    f"stack {stack_name} still {status} after {polls} polls", status
                )
            self.sleep(self.interval)


class CloudFormationModule(Module):
    """Create or update a CloudFormation stack and expose its outputs."""

    def __init__(
        self,
        stack_name: StringLike,
        template: Template,
        *,
        parameters: Optional[dict[str, StringLike]] = None,
        capabilities: Sequence[str] = DEFAULT_CAPABILITIES,
        region: Optional[str] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_polls: Optional[int] = DEFAULT_MAX_POLLS,
        client: Any = None,
    ):
        self.stack_name: Resolver = lazy.coerce(stack_name)
        self.template = template
        self.parameters = {k: lazy.coerce(v) for k, v in (parameters or {}).items()}
        self.capabilities = list(capabilities)
        self.region = region
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self._client = client

    def name(self) -> str:
        return "cloudformation"

    @property
    def client(self) -> Any:
        if self._client is None:
            if self.region:
                self._client = boto3.client("cloudformation", region_name=self.region)
            else:
                self._client = boto3.client("cloudformation")
        return self._client

    def apply(self, context: Context) -> Response:
        stack_name = self.stack_name.resolve(context)
        params = self._stack_params(stack_name, context)
        try:
            self._describe(stack_name)
        except StackNotFoundError:
            return self._create(stack_name, params)
        except CloudFormationError as exc:
            raise ModuleError(str(exc), changed=False) from exc
        return self._update(stack_name, params)

    def _create(self, stack_name: str, params: dict[str, Any]) -> Response:
        logger.info("creating stack %s", stack_name)
        try:
            self._call("create_stack", **params)
            stack = self._waiter(CREATE_COMPLETE, CREATE_FAILURES).wait(stack_name)
        except CloudFormationError as exc:
            raise ModuleError(str(exc), changed=True) from exc
        return Response(changed=True, output=StackOutputs.from_stack(stack))

    def _update(self, stack_name: str, params: dict[str, Any]) -> Response:
        logger.info("updating stack %s", stack_name)
        try:
            self._call("update_stack", **params)
        except NoUpdateError:
            logger.debug("stack %s has no updates", stack_name)
            try:
                stack = self._describe(stack_name)
            except CloudFormationError as exc:
                raise ModuleError(str(exc), changed=False) from exc
            return Response(changed=False, output=StackOutputs.from_stack(stack))
        except CloudFormationError as exc:
            raise ModuleError(str(exc), changed=True) from exc

        try:
            stack = self._waiter(UPDATE_COMPLETE, UPDATE_FAILURES).wait(stack_name)
        except CloudFormationError as exc:
            raise ModuleError(str(exc), changed=True) from exc
        return Response(changed=True, output=StackOutputs.from_stack(stack))

    def _waiter(self, success: str, failures: frozenset[str]) -> StackWaiter:
        return StackWaiter(
            self._describe,
            success=success,
            failures=failures,
            interval=self.poll_interval,
            max_polls=self.max_polls,
        )

    def _describe(self, stack_name: str) -> dict[str, Any]:
        response = self._call("describe_stacks", StackName=stack_name)
        stacks = response.get("Stacks") or []
        if not stacks:
            raise CloudFormationError(f"describe_stacks returned no stack for {stack_name}")
        return stacks[0]

    def _call(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        try:
            return getattr(self.client, operation)(**kwargs)
        except ClientError as exc:
            message = str(exc)
            if "does not exist" in message and "Stack with id" in message:
                raise StackNotFoundError(message) from exc
            if "No updates are to be performed" in message:
                raise NoUpdateError(message) from exc
            raise CloudFormationError(message) from exc
        except BotoCoreError as exc:
            raise CloudFormationError(str(exc)) from exc

    def _stack_params(self, stack_name: str, context: Context) -> dict[str, Any]:
        params: dict[str, Any] = {"StackName": stack_name, "Capabilities": list(self.capabilities)}
        params.update(self.template.as_params(context))
        if self.parameters:
            params["Parameters"] = [
                {"ParameterKey": key, "ParameterValue": value.resolve(context)}
                for key, value in self.parameters.items()
            ]
        return params

    @classmethod
    def from_spec(cls, spec: dict[str, Any]) -> "CloudFormationModule":
        if "stack_name" not in spec:
            raise ValueError("cloudformation module requires a stack_name")
        raw_params = spec.get("parameters") or {}
        if not isinstance(raw_params, dict):
            raise ValueError("cloudformation parameters must be a mapping")
        max_polls = spec.get("max_polls", DEFAULT_MAX_POLLS)
        region = spec.get("region")
        return cls(
            lazy.parse(spec["stack_name"]),
            cls._template_from_spec(spec),
            parameters={str(k): lazy.parse(v) for k, v in raw_params.items()},
            capabilities=[str(c) for c in spec.get("capabilities", DEFAULT_CAPABILITIES)],
            region=str(region) if region else None,
            poll_interval=float(spec.get("poll_interval", DEFAULT_POLL_INTERVAL)),
            max_polls=int(max_polls) if max_polls is not None else None,
        )

    @staticmethod
    def _template_from_spec(spec: dict[str, Any]) -> Template:
        given = [key for key in ("template_body", "template_file", "template_url") if key in spec]
        if len(given) != 1:
            raise ValueError(
                "cloudformation module requires exactly one of template_body, template_file or template_url"
            )
        if "template_body" in spec:
            return Template(body=str(spec["template_body"]))
        if "template_url" in spec:
            return Template(url=lazy.parse(spec["template_url"]))
        path = Path(str(spec["template_file"]))
        if not path.is_absolute() and "_playbook_dir" in spec:
            path = Path(spec["_playbook_dir"]) / path
        return Template.from_file(path)
