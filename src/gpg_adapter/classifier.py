from __future__ import annotations

import logging

from .patterns import DEFAULT_RULE_SET, RuleSet
from .types import ClassifiedResult, ErrorKind, ProcessOutcome

logger = logging.getLogger("gpg-adapter.classifier")

UNKNOWN_FAILURE_MESSAGE = "gpg exited with status {code} and produced no output"


class OutputClassifier:
    """Turns the two output channels of a finished gpg process into one verdict.

    The judgment is pattern based. The exit status is only consulted when
    neither channel carries any text, because gpg exits non-zero for some
    operations that still produced usable output, and exits zero for others
    that failed.
    """

    def __init__(self, rules: RuleSet = DEFAULT_RULE_SET) -> None:
        self._rules = rules

    @property
    def rules(self) -> RuleSet:
        return self._rules

    def classify(self, outcome: ProcessOutcome) -> ClassifiedResult:
        primary = outcome.primary_text
        secondary = outcome.secondary_text

        # gpg reports some results (import, verify, key generation) on stderr
        output = secondary if secondary and not primary else primary

        secondary_error = secondary
        if secondary and self._rules.is_benign(secondary):
            secondary_error = ""

        signature = None
        if not secondary_error:
            signature = self._rules.match_signature(output)

        if secondary_error:
            # A real stderr error wins over a signature guess on the output
            stable = self._rules.match_signature(secondary_error)
            result = ClassifiedResult(
                ok=False,
                output=output,
                error_kind=stable.kind if stable and stable.kind else ErrorKind.UNKNOWN,
                error_message=secondary_error.strip(),
                exit_code=outcome.exit_code,
            )
        elif signature is not None:
            result = ClassifiedResult(
                ok=False,
                output=output,
                error_kind=signature.kind or ErrorKind.UNKNOWN,
                error_message=signature.message or signature.source,
                exit_code=outcome.exit_code,
            )
        elif not primary and not secondary and outcome.exit_code != 0:
            result = ClassifiedResult(
                ok=False,
                output="",
                error_kind=ErrorKind.UNKNOWN,
                error_message=UNKNOWN_FAILURE_MESSAGE.format(code=outcome.exit_code),
                exit_code=outcome.exit_code,
            )
        else:
            result = ClassifiedResult(ok=True, output=output, exit_code=outcome.exit_code)

        logger.debug(
            "classified exit=%s ok=%s kind=%s rules=%s",
            outcome.exit_code,
            result.ok,
            result.error_kind.name if result.error_kind else None,
            self._rules.name,
        )
        return result


def classify(outcome: ProcessOutcome, rules: RuleSet = DEFAULT_RULE_SET) -> ClassifiedResult:
    return OutputClassifier(rules).classify(outcome)
