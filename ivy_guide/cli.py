"""
Terminal Front End

Runs a career discovery session in the terminal on typed input. Speech
capture is not available here, so the voice entry path asks the onboarding
questions one at a time and takes typed answers, as voice onboarding does
with spoken ones.

Usage:
    ivy-guide --config config/session_params.json --profile config/student_profile.json
"""

import argparse
import asyncio
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ivy_guide.coordinator import ConversationOrchestrator
from ivy_guide.models.config import SessionParams
from ivy_guide.models.errors import CaptureUnavailableError, IvyGuideError
from ivy_guide.models.profile import PROFILE_FIELDS
from ivy_guide.models.report import FinalReport
from ivy_guide.models.session import Notice
from ivy_guide.utils.logger import configure_logging, get_logger
from ivy_guide.utils.progress_tracker import ProgressTracker, format_clock
from ivy_guide.utils.transcript import export_transcript
from ivy_guide.utils.validator import ConfigurationError, ConfigValidator

FORM_LABELS = {
    "name": "Name",
    "grade": "Grade or age",
    "curriculum": "Curriculum (e.g. CBSE, IB, IGCSE)",
    "stream": "Stream (optional)",
    "country": "Country",
}

COMMANDS = {
    "/end": "finish the conversation and get your report",
    "/mic": "toggle voice capture",
    "/transcript": "save the conversation so far",
    "/restart": "start over",
}

NOTICE_STYLES = {"info": "cyan", "warning": "yellow", "error": "red"}


class TerminalSession:
    """Drives one ConversationOrchestrator from a rich console."""

    def __init__(
        self,
        orchestrator: ConversationOrchestrator,
        console: Console,
        output_dir: Path,
        prefilled_profile: Optional[Dict[str, Any]] = None,
    ):
        self.orchestrator = orchestrator
        self.console = console
        self.output_dir = output_dir
        self.prefilled_profile = prefilled_profile or {}
        self.tracker = ProgressTracker(console=console)
        self._shown = 0
        self.orchestrator.on_notice = self.show_notice
        self.logger = get_logger(
            correlation_id=orchestrator.session.id, component="terminal_session"
        )

    # ------------------------------------------------------------------
    # Output helpers
    # ------------------------------------------------------------------
    def show_notice(self, notice: Notice) -> None:
        style = NOTICE_STYLES.get(notice.level, "white")
        body = f"[bold]{notice.title}[/bold]"
        if notice.description:
            body += f"\n{notice.description}"
        self.console.print(Panel(body, border_style=style, expand=False))

    def say(self, text: str) -> None:
        self.console.print(f"[bold magenta]Ivy:[/bold magenta] {text}")

    async def ask(self, prompt: str) -> str:
        return await asyncio.to_thread(self.console.input, prompt)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    async def run(self) -> bool:
        """
        Run one session to its end.

        Returns:
            True if the user asked to start over
        """
        self.console.print(
            Panel(
                "[bold]Welcome to Ivy[/bold]\n"
                "A short conversation about what you enjoy and what you're good at, "
                "ending with a personal career discovery report.",
                border_style="magenta",
            )
        )
        self.orchestrator.begin()
        self._shown = 0

        if not await self.collect_profile():
            return True
        if await self.converse():
            return True
        while self.orchestrator.phase == "evaluating":
            self.tracker.start_evaluation()
            try:
                await self.orchestrator.settle()
            finally:
                self.tracker.stop()
            if self.orchestrator.phase == "dialogue" and await self.converse():
                return True

        if self.orchestrator.session.final_report is not None:
            self.render_report(self.orchestrator.session.final_report)
        return await self.after_report()

    async def collect_profile(self) -> bool:
        if self.prefilled_profile:
            self.orchestrator.choose_entry_method("form")
            self.orchestrator.submit_profile_form(self.prefilled_profile)
            self.console.print(
                f"[dim]Loaded profile for {self.orchestrator.session.profile.name}[/dim]"
            )
            return True

        choice = ""
        while choice not in ("form", "voice"):
            choice = (
                await self.ask("How would you like to start? Type [bold]form[/bold] or [bold]voice[/bold]: ")
            ).strip().lower()

        if choice == "form":
            self.orchestrator.choose_entry_method("form")
            while True:
                form = {}
                for field in PROFILE_FIELDS:
                    form[field] = await self.ask(f"{FORM_LABELS[field]}: ")
                try:
                    self.orchestrator.submit_profile_form(form)
                    return True
                except IvyGuideError as e:
                    self.console.print(f"[red]{e}[/red]")

        self.orchestrator.choose_entry_method("voice")
        while self.orchestrator.phase == "profile-collection":
            await self.orchestrator.settle()
            self.say(self.orchestrator.session.onboarding_prompt)
            answer = await self.ask("[bold green]Me:[/bold green] ")
            if answer.strip() == "/restart":
                return False
            await self.orchestrator.submit_text(answer)
        return True

    async def settle_with_countdown(self) -> None:
        """Wait for pending turn work while showing the countdown."""
        session = self.orchestrator.session
        settle = asyncio.create_task(self.orchestrator.settle())
        self.tracker.start_countdown(
            total_s=self.orchestrator.params.timing.session_duration_s,
            remaining_s=session.timer_remaining_s,
        )
        try:
            while not settle.done():
                self.tracker.update_remaining(session.timer_remaining_s)
                await asyncio.wait({settle}, timeout=0.25)
        finally:
            self.tracker.stop()
        settle.result()

    async def converse(self) -> bool:
        """
        Dialogue loop on typed input.

        Returns:
            True if the user asked to start over
        """
        self.console.print(
            "[dim]Commands: "
            + ", ".join(f"{name} ({desc})" for name, desc in COMMANDS.items())
            + "[/dim]"
        )
        while True:
            await self.settle_with_countdown()
            messages = self.orchestrator.session.messages
            for message in messages[self._shown:]:
                if message.role == "assistant":
                    self.say(message.content)
            self._shown = len(messages)

            if self.orchestrator.phase != "dialogue":
                return False

            remaining = format_clock(self.orchestrator.session.timer_remaining_s)
            answer = await self.ask(f"[dim]{remaining}[/dim] [bold green]Me:[/bold green] ")
            command = answer.strip()

            if self.orchestrator.phase != "dialogue":
                self.console.print("[yellow]Time's up! Let's look at what we found.[/yellow]")
                return False
            if command == "/restart":
                return True
            if command == "/end":
                self.orchestrator.end_session("user")
                return False
            if command == "/transcript":
                self.save_transcript()
                continue
            if command == "/mic":
                try:
                    on = self.orchestrator.toggle_capture()
                    self.console.print(f"[dim]Voice capture {'on' if on else 'off'}[/dim]")
                except CaptureUnavailableError as e:
                    self.console.print(f"[yellow]{e}. Keep typing your responses.[/yellow]")
                continue

            await self.orchestrator.submit_text(answer)
            self._shown = len(self.orchestrator.session.messages)

    def render_report(self, report: FinalReport) -> None:
        profile = report.profile
        header = f"[bold]{profile.name}[/bold]"
        details = [d for d in (profile.grade, profile.curriculum, profile.stream, profile.country) if d]
        if details:
            header += " - " + ", ".join(details)
        self.console.print(Panel(header, title="Your Career Discovery Report", border_style="magenta"))

        summary = Table(show_header=True, header_style="bold")
        summary.add_column("Interests")
        summary.add_column("Strengths")
        summary.add_column("Constraints")
        rows = max(len(report.interests), len(report.strengths), len(report.constraints), 1)
        for i in range(rows):
            summary.add_row(
                *(
                    column[i] if i < len(column) else ""
                    for column in (report.interests, report.strengths, report.constraints)
                )
            )
        self.console.print(summary)

        if report.career_clusters:
            self.console.print(
                "[bold]Career clusters explored:[/bold] " + ", ".join(report.career_clusters)
            )

        for path in report.recommended_paths:
            body = "[bold]Why it fits[/bold]\n" + "\n".join(f"  - {b}" for b in path.why_it_fits)
            body += "\n[bold]Getting ready to apply[/bold]\n" + "\n".join(
                f"  - {b}" for b in path.application_readiness
            )
            self.console.print(Panel(body, title=path.name, border_style="green"))

    async def after_report(self) -> bool:
        while True:
            choice = (
                await self.ask("[bold]t[/bold]ranscript, [bold]r[/bold]estart or [bold]q[/bold]uit? ")
            ).strip().lower()
            if choice.startswith("t"):
                self.save_transcript()
            elif choice.startswith("r"):
                return True
            elif choice.startswith("q"):
                return False

    def save_transcript(self) -> None:
        path = export_transcript(self.orchestrator.session.messages, self.output_dir)
        self.console.print(f"[green]Transcript saved to {path}[/green]")


async def run_sessions(
    params: SessionParams, profile: Dict[str, Any], output_dir: Path, console: Console
) -> int:
    orchestrator = ConversationOrchestrator(session_params=params)
    terminal = TerminalSession(orchestrator, console, output_dir, prefilled_profile=profile)
    try:
        while await terminal.run():
            orchestrator.restart()
            terminal.logger = get_logger(
                correlation_id=orchestrator.session.id, component="terminal_session"
            )
    finally:
        await orchestrator.shutdown()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ivy-guide",
        description="Voice-style career discovery conversation for students",
    )
    parser.add_argument(
        "--config",
        default="config/session_params.json",
        help="Session parameters JSON (defaults are used if the file is missing)",
    )
    parser.add_argument(
        "--profile",
        default=None,
        help="Student profile JSON; skips profile collection",
    )
    parser.add_argument(
        "--output-dir",
        default="output",
        help="Directory for exported transcripts",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the configured log level",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    console = Console()
    load_dotenv()

    try:
        configs = ConfigValidator().validate_all_configs(
            session_params_path=Path(args.config),
            profile_path=Path(args.profile) if args.profile else None,
        )
        params = SessionParams(**configs["session_params"])
    except (ConfigurationError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        return 1

    configure_logging(log_level=args.log_level or params.log_level)

    try:
        return asyncio.run(
            run_sessions(params, configs["profile"], Path(args.output_dir), console)
        )
    except (KeyboardInterrupt, EOFError):
        console.print("\n[dim]Goodbye![/dim]")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
