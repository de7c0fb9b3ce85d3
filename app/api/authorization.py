"""Named authorization policies evaluated against incoming requests."""

from __future__ import annotations

import inspect
from typing import Awaitable, Callable, Union

from starlette.requests import Request

AuthorizationPolicy = Callable[[Request], Union[bool, Awaitable[bool]]]


class AuthorizationPolicyRegistry:
    """Mapping from policy name to a predicate over the request.

    Predicates may be plain functions or coroutines returning a bool.
    """

    def __init__(self) -> None:
        self._policies: dict[str, AuthorizationPolicy] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._policies

    def authorization_register(self, name: str, policy: AuthorizationPolicy) -> "AuthorizationPolicyRegistry":
        """Register one named policy.

        Args:
            name: Unique policy name.
            policy: Predicate returning True when the request is allowed.

        Returns:
            AuthorizationPolicyRegistry: The registry itself, for chained registration.

        Raises:
            ValueError: Raised when the name is blank, duplicated or the policy is not callable.
        """

        normalized_name = name.strip()
        if not normalized_name:
            raise ValueError("policy name must not be blank")
        if normalized_name in self._policies:
            raise ValueError(f"authorization policy already registered: {normalized_name}")
        if not callable(policy):
            raise ValueError("policy must be callable")

        self._policies[normalized_name] = policy
        return self

    def authorization_policy_names(self) -> tuple[str, ...]:
        return tuple(self._policies)

    def authorization_verify(self, required_policies: tuple[str, ...] | list[str]) -> None:
        """Ensure every required policy is registered.

        Raises:
            ValueError: Raised with the first unknown policy name.
        """

        for policy_name in required_policies:
            if policy_name not in self._policies:
                raise ValueError(f"unknown authorization policy: {policy_name}")

    async def authorization_evaluate(self, required_policies: tuple[str, ...], request: Request) -> bool:
        """Evaluate required policies in order, stopping at the first denial.

        Args:
            required_policies: Policy names the endpoint requires.
            request: Incoming request.

        Returns:
            bool: True when every policy allows the request.

        Raises:
            KeyError: Raised when a required policy is not registered.
        """

        for policy_name in required_policies:
            outcome = self._policies[policy_name](request)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            if not outcome:
                return False
        return True
