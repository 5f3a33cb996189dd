# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judge

from abc import ABC, abstractmethod

from coreason_judge.models import ExecutionRequest, ExecutionResult, Language


class ToolchainRuntime(ABC):
    """
    Abstract base class for language toolchain adapters (subprocess, in-process, remote).
    Follows the Strategy Pattern.
    """

    #: Languages this adapter can execute.
    languages: frozenset[Language] = frozenset()

    def supports(self, language: Language) -> bool:
        return language in self.languages

    def _check_language(self, request: ExecutionRequest) -> None:
        if not self.supports(request.language):
            raise ValueError(f"{type(self).__name__} does not support language: {request.language.value}")

    @abstractmethod
    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Compile (if needed) and run the request's source once against its stdin.

        Launch failures, compile errors, timeouts and network errors are reported
        through the returned result rather than raised.

        Args:
            request: The execution request.

        Returns:
            ExecutionResult: The fully populated result of this single attempt.

        Raises:
            ValueError: If the adapter does not support the request's language.
        """
        pass  # pragma: no cover
