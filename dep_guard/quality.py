"""Optional post-install quality gates: lint, type check, tests, build.

Each gate runs ``npm run <script>`` only when the script exists in
package.json and the user agrees. Failures are reported but never abort
the workflow.
"""

from __future__ import annotations

from .config import ScriptNames
from .context import ExecutionContext
from .models import QualityCheckResults
from .prompts import ConfirmationGate
from .shell import header, info, skip, success, try_run, warning

# gate key → (activity shown in prompts, past-tense noun for results)
GATES: dict[str, tuple[str, str]] = {
    "lint": ("linter", "Lint"),
    "typecheck": ("type checks", "Type check"),
    "test": ("tests", "Tests"),
    "build": ("build", "Build"),
}


def validate_scripts(context: ExecutionContext) -> dict[str, bool]:
    """Warn about configured scripts that package.json does not define.

    Returns:
        Gate key → whether its script exists.
    """
    names: ScriptNames = context.script_names
    found = {key: context.has_script(getattr(names, key)) for key in GATES}
    missing = [f'{key}: "{getattr(names, key)}"' for key, ok in found.items() if not ok]

    if missing:
        warning("The following scripts were not found in package.json:")
        for entry in missing:
            info(f"  - {entry}")
        info(
            "These quality checks will be skipped. "
            "Use --lint, --typecheck, --test, --build to specify custom script names."
        )
    return found


class QualityService:
    def __init__(self, context: ExecutionContext, gate: ConfirmationGate) -> None:
        self.context = context
        self.gate = gate

    def _run_gate(self, key: str) -> bool | None:
        """Run one gate. True passed, False failed, None skipped."""
        activity, noun = GATES[key]
        script = getattr(self.context.script_names, key)

        if not self.context.has_script(script):
            skip(f'Skipping {activity} (script "{script}" not found)')
            return None

        header(f"Running {activity}")
        if not self.gate.confirm(
            f"Do you want to run {activity} (npm run {script})?", default=False
        ):
            skip(f"Skipping {activity}")
            return None

        if try_run("npm", "run", script):
            success(f"{noun} passed")
            return True
        warning(f"{noun} failed. Please review the output above.")
        return False

    def run_lint(self) -> bool | None:
        return self._run_gate("lint")

    def run_typecheck(self) -> bool | None:
        return self._run_gate("typecheck")

    def run_tests(self) -> bool | None:
        return self._run_gate("test")

    def run_build(self) -> bool | None:
        return self._run_gate("build")

    def run_all(self) -> QualityCheckResults:
        """Run lint, type checks, and tests in that order, then summarise."""
        results = QualityCheckResults(
            lint=self.run_lint(),
            typecheck=self.run_typecheck(),
            tests=self.run_tests(),
        )
        failures = results.failures()
        if failures:
            warning(f"Quality checks completed with failures: {', '.join(failures)}")
        else:
            success("Quality checks complete!")
        return results
