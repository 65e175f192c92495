"""
Offline console demo: query availability and admit bookings against the
seeded demo salons, without starting the HTTP server.

Dates can be given as ISO dates or as offsets from today ("+0" is today,
"+3" is three days out).

Usage:
    python console_demo.py
    python console_demo.py --scenario booking
    python console_demo.py --scenario race
"""

import argparse
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from typing import Optional

from salon_scheduler.config import settings
from salon_scheduler.engine import SchedulingEngine, build_engine
from salon_scheduler.errors import SchedulingError, SlotNoLongerAvailableError
from salon_scheduler.time_model import parse_date

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

HELP = """Commands:
  slots <provider> <date>              free slots for a provider
  status <provider> <date>             day classification
  why <provider> <date>                reason for every unavailable slot
  check <provider> <date> <time>       is one slot free?
  providers <salon> <date>             providers with at least one free slot
  dates <provider> [days]              dates with free slots from today
  bookings <salon> [date]              a salon's bookings by date and time
  book <provider> <date> <time> [min]  admit a booking
  cancel <booking|last>                cancel a booking
  reschedule <booking|last> <date> <time>
  race <provider> <date> <time>        two concurrent bookings for one slot
  quit"""


class ConsoleSession:
    """Line-oriented shell over a demo-seeded scheduling engine."""

    def __init__(self, engine: Optional[SchedulingEngine] = None) -> None:
        self.today = date.today()
        self.engine = engine or build_engine(settings, seed_demo_data=True, demo_base_date=self.today)
        self.last_booking_id: Optional[str] = None

    def say(self, text: str) -> None:
        print(f"{GREEN}{text}{RESET}")

    def warn(self, text: str) -> None:
        print(f"{YELLOW}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "availability": [
            "providers salon-1 +1",
            "slots sal-1 +1",
            "status sal-1 +1",
            "status sal-1 +6",
            "status sal-3 +2",
            "why sal-3 +2",
            "dates sal-6 30",
        ],
        "booking": [
            "slots sal-5 +2",
            "book sal-5 +2 2:00 PM 90",
            "why sal-5 +2",
            "book sal-5 +2 2:30 PM",
            "reschedule last +3 10:00",
            "check sal-5 +2 2:00 PM",
            "cancel last",
            "check sal-5 +3 10:00",
            "bookings salon-2 +3",
        ],
        "race": [
            "race sal-1 +4 11:00",
            "why sal-1 +4",
        ],
    }

    MAX_INPUT_LENGTH = 200

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  SALON SCHEDULER - {title}{RESET}")
        print(f"{BOLD}  Today: {self.today.isoformat()}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        for step in steps:
            print(f"\n{BLUE}> {RESET}{step}")
            self._process_input(step)

        stats = self.engine.cache.stats if self.engine.cache is not None else None
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        if stats is not None:
            print(f"{DIM}  Cache: {stats.hits} hits, {stats.misses} misses, "
                  f"{stats.invalidations} invalidations{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def run(self) -> None:
        self._banner("Console Demo")
        print(HELP)

        while True:
            user_input = input(f"\n{BLUE}> {RESET}").strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                return
            if len(user_input) > self.MAX_INPUT_LENGTH:
                self.warn("That command is too long.")
                continue
            self._process_input(user_input)

    # ------------------------------------------------------------------ #
    # Command dispatch
    # ------------------------------------------------------------------ #

    def _date(self, token: str) -> date:
        if token.startswith("+") and token[1:].isdigit():
            return self.today + timedelta(days=int(token[1:]))
        return parse_date(token)

    def _booking_ref(self, token: str) -> str:
        if token == "last":
            if self.last_booking_id is None:
                raise ValueError("no booking made in this session yet")
            return self.last_booking_id
        return token

    @staticmethod
    def _split_time(args: list[str]) -> tuple[str, list[str]]:
        """Join "2:00 PM" style labels that the shell split in two."""
        if len(args) > 1 and args[1].lower() in ("am", "pm"):
            return f"{args[0]} {args[1]}", args[2:]
        return args[0], args[1:]

    def _process_input(self, text: str) -> None:
        command, *args = text.split()
        handler = getattr(self, f"_cmd_{command.lower()}", None)
        if handler is None:
            self.warn(f"Unknown command '{command}'.")
            print(HELP)
            return
        try:
            handler(args)
        except SchedulingError as exc:
            print(f"{RED}{exc.kind}: {exc.message}{RESET}")
        except (ValueError, IndexError) as exc:
            self.warn(f"Could not run '{text}': {exc or 'missing arguments'}")

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def _cmd_help(self, args: list[str]) -> None:
        print(HELP)

    def _cmd_slots(self, args: list[str]) -> None:
        provider_id, day = args[0], self._date(args[1])
        slots = self.engine.resolver.list_available_slots(provider_id, day)
        if not slots:
            self.say(f"{provider_id} has no free slots on {day}.")
            return
        self.say(f"{provider_id} on {day}: {len(slots)} free slots")
        self.system_log(", ".join(slots))

    def _cmd_status(self, args: list[str]) -> None:
        provider_id, day = args[0], self._date(args[1])
        status = self.engine.resolver.status_for(provider_id, day)
        self.say(f"{provider_id} on {day}: {status.state.value} ({status.availability_level.value})")
        self.system_log(status.reason)

    def _cmd_why(self, args: list[str]) -> None:
        provider_id, day = args[0], self._date(args[1])
        reasons = self.engine.resolver.unavailable_reasons(provider_id, day)
        if not reasons:
            self.say(f"Every scheduled slot is free for {provider_id} on {day}.")
            return
        for label, reason in reasons.items():
            detail = f" ({reason.detail})" if reason.detail else ""
            self.system_log(f"{label:>8}  {reason.kind.value}{detail}")

    def _cmd_check(self, args: list[str]) -> None:
        provider_id, day = args[0], self._date(args[1])
        label, _ = self._split_time(args[2:])
        free = self.engine.resolver.check_slot(provider_id, day, label)
        self.say(f"{label} on {day} for {provider_id}: {'free' if free else 'not available'}")

    def _cmd_providers(self, args: list[str]) -> None:
        salon_id, day = args[0], self._date(args[1])
        providers = sorted(self.engine.resolver.list_available_providers(salon_id, day))
        names = [self.engine.providers.get(p).name for p in providers]
        self.say(f"Available at {salon_id} on {day}: {', '.join(names) or 'nobody'}")

    def _cmd_dates(self, args: list[str]) -> None:
        provider_id = args[0]
        days = int(args[1]) if len(args) > 1 else 14
        dates = self.engine.resolver.available_dates(provider_id, days=days)
        self.say(f"{provider_id} has openings on {len(dates)} of the next {days} days")
        self.system_log(", ".join(d.isoformat() for d in dates))

    def _cmd_bookings(self, args: list[str]) -> None:
        day = self._date(args[1]) if len(args) > 1 else None
        listing = self.engine.admission.list_salon_bookings(args[0], day=day, limit=20)
        self.say(f"{listing.total} bookings at {args[0]}" + (f" on {day}" if day else ""))
        for booking in listing.bookings:
            self.system_log(
                f"{booking.booking_id} {booking.date} {booking.start_time}-{booking.end_time} "
                f"{booking.provider_id} {booking.status.value}"
            )

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def _cmd_book(self, args: list[str]) -> None:
        provider_id, day = args[0], self._date(args[1])
        label, rest = self._split_time(args[2:])
        duration = int(rest[0]) if rest else None
        booking = self.engine.admission.create_booking(
            provider_id, day, label, duration=duration, customer_id="console"
        )
        self.last_booking_id = booking.booking_id
        self.say(
            f"Booked {booking.booking_id}: {provider_id} on {booking.date} "
            f"{booking.start_time}-{booking.end_time} ({booking.status.value})"
        )

    def _cmd_cancel(self, args: list[str]) -> None:
        booking = self.engine.admission.cancel_booking(
            self._booking_ref(args[0]), actor="console", reason="Cancelled from console"
        )
        self.say(f"{booking.booking_id} is now {booking.status.value}")

    def _cmd_reschedule(self, args: list[str]) -> None:
        booking_id = self._booking_ref(args[0])
        day = self._date(args[1])
        label, _ = self._split_time(args[2:])
        replacement = self.engine.admission.reschedule_booking(booking_id, day, label, actor="console")
        self.last_booking_id = replacement.booking_id
        self.say(
            f"{booking_id} moved to {replacement.booking_id} on {replacement.date} "
            f"at {replacement.start_time}"
        )

    def _cmd_race(self, args: list[str]) -> None:
        provider_id, day = args[0], self._date(args[1])
        label, _ = self._split_time(args[2:])

        def attempt(customer: str) -> str:
            try:
                booking = self.engine.admission.create_booking(
                    provider_id, day, label, duration=30, customer_id=customer
                )
                return f"{customer}: booked {booking.booking_id}"
            except SlotNoLongerAvailableError as exc:
                return f"{customer}: {exc.kind}"

        with ThreadPoolExecutor(max_workers=2) as pool:
            outcomes = list(pool.map(attempt, ["alice", "bob"]))
        for outcome in outcomes:
            self.system_log(outcome)


def main() -> None:
    parser = argparse.ArgumentParser(description="Salon Scheduler Console Demo")
    parser.add_argument(
        "--scenario",
        choices=list(ConsoleSession.SCENARIOS.keys()),
        help="Run a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        try:
            session.run()
        except (KeyboardInterrupt, EOFError):
            print(f"\n{DIM}Session ended.{RESET}")
            sys.exit(0)


if __name__ == "__main__":
    main()
