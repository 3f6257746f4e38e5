"""Console entry point."""
import argparse
import asyncio
import logging
from typing import Optional

from neonvocab import __version__
from neonvocab.app import VocabApp
from neonvocab.config import ensure_directories, settings
from neonvocab.logging_config import setup_logging
from neonvocab.models.state_models import GoalType, SessionGoal, SessionStatus
from neonvocab.monitoring import start_monitoring
from neonvocab.services.stats_service import day_streak, estimate_completion_days
from neonvocab.services.training_methods import AnswerAttempt

logger = logging.getLogger(__name__)

HINT_COMMAND = "?"
GIVE_UP_COMMAND = "!"


def parse_goal(value: Optional[str]) -> Optional[SessionGoal]:
    """Parse goals written as TYPE:TARGET, e.g. total_words:20."""
    if not value:
        return None
    goal_type, _, target = value.partition(":")
    try:
        return SessionGoal(GoalType(goal_type), float(target))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid goal {value!r}: {e}") from e


async def ask(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


async def quiz_current_word(app: VocabApp) -> None:
    """Ask for the current word until the attempt ends."""
    word = app.store.current_word
    definition = await app.current_definition()
    print(f"\n({definition.part_of_speech}) {definition.definition}")
    print(f"  e.g. {definition.example_sentence}")

    attempt = AnswerAttempt(word)
    command = None
    while command is None:
        text = await ask(f"[{HINT_COMMAND} hint, {GIVE_UP_COMMAND} give up] > ")
        if text.strip() == HINT_COMMAND:
            command = attempt.request_hint()
        elif text.strip() == GIVE_UP_COMMAND:
            command = attempt.give_up()
        else:
            command = attempt.submit(text)
            if command is None:
                print("Not quite.")
        if command is None:
            print(f"Hint: {attempt.hint_text()}")

    app.submit_result(command)
    if command.success:
        print(f"Correct! {word.word} ({word.success_count}/3)")
    else:
        print(f"The word was: {word.word}")


async def run_console(app: VocabApp, goal: Optional[SessionGoal], daily: bool) -> None:
    store = app.store
    if daily:
        status = app.start_daily_challenge()
        if store.is_challenge_retry:
            print("Retrying today's challenge: your score won't change.")
    else:
        if not store.persisted.active_wordlist.words:
            print("The active word list is empty. Import words with --import or --preset.")
            return
        status = app.start_session(goal)

    while True:
        if status == SessionStatus.LEARNING:
            await quiz_current_word(app)
            status = app.next_word()
        elif status == SessionStatus.GOAL_MET:
            if store.session.is_daily_challenge:
                score = store.persisted.daily_challenge_scores.get(store.session.challenge_date)
                print(f"\nDaily challenge finished! Today's score: {score}")
                break
            answer = await ask("\nGoal met! Keep going? [y/N] ")
            if answer.strip().lower() != "y":
                break
            status = app.continue_session()
        else:
            print("\nAll words mastered!")
            break

    store.end_session()
    today = store.clock().date()
    print(f"Day streak: {day_streak(store.persisted.daily_stats, today)}")
    estimate = estimate_completion_days(store.active_words, store.persisted.daily_stats)
    if estimate is not None:
        print(f"Estimated days to finish this list: {estimate}")


async def main(args: argparse.Namespace) -> None:
    """Run the application."""
    app = VocabApp()
    try:
        await app.start()
        if args.preset:
            added = app.import_preset(args.preset)
            logger.info(f"Imported {added} words from preset {args.preset!r}")
        if args.import_file:
            with open(args.import_file, encoding="utf-8") as f:
                added = app.store.import_words(f.read())
            app.save()
            logger.info(f"Imported {len(added)} words from {args.import_file}")
        await run_console(app, args.goal, args.daily)
    finally:
        logger.info("Cleaning up...")
        await app.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="neonvocab", description="Learn words from their definitions.")
    parser.add_argument("--import", dest="import_file", help="file of comma or newline separated words")
    parser.add_argument("--preset", help="bundled word list to import")
    parser.add_argument("--goal", type=parse_goal, help="session goal as TYPE:TARGET, e.g. time:10")
    parser.add_argument("--daily", action="store_true", help="play the daily challenge")
    return parser


def cli() -> None:
    """Console script entry point."""
    arguments = build_parser().parse_args()

    ensure_directories()

    setup_logging(f"Starting NeonVocab v{__version__} ...")

    if settings.monitoring.port:
        start_monitoring(settings.monitoring.port)

    try:
        asyncio.run(main(arguments))
    except (KeyboardInterrupt, EOFError):
        logger.info("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    cli()
