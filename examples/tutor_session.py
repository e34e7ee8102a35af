"""
Complete session example: Sign in -> Chat -> Vault -> Quiz -> Profile

Demonstrates one learner's session end to end:
1. Start a session (greeting, profile, daily login XP)
2. Chat with the mentor until a concept is mastered
3. Review the Constitutional Vault
4. Take a quiz generated from the vault
5. Show the updated profile and token usage

Requires OPENAI_API_KEY (a .env file in the project root works).
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from policypath import SessionOrchestrator
from policypath.agents import MentorClient
from policypath.config import config, configure_logging, token_tracker
from policypath.errors import EmptyVaultError, PolicyPathError
from policypath.signals import MasteryCommitted, ProgressionUpdated
from policypath.utils.persistence import JSONFileStore


def banner(title):
    print("=" * 60)
    print(title)
    print("=" * 60)


async def main():
    configure_logging()
    errors = config.validate()
    if errors:
        for error in errors:
            print(f"⚠ {error}")
        return 1

    config.prepare_fs()
    orchestrator = SessionOrchestrator(JSONFileStore(), MentorClient())
    orchestrator.signals.connect(
        MasteryCommitted, lambda s: print(f"  ★ Mastered: {s.entry.title}")
    )
    orchestrator.signals.connect(
        ProgressionUpdated, lambda s: print(f"  XP {s.profile.xp} | streak {s.profile.streak}")
    )

    # ==================== Step 1: Sign in ====================
    banner("STEP 1: Starting session")
    profile = await orchestrator.start_session("demo-learner", display_name="Asha")
    print(orchestrator.history[-1].text)
    print(f"✓ Profile: {profile.display_name} ({profile.xp} XP)")
    print()

    # ==================== Step 2: Chat ====================
    banner("STEP 2: Chatting with the mentor")
    print("Type your messages. An empty line moves on to the quiz.")
    while True:
        text = input("\nYou: ").strip()
        if not text:
            break
        try:
            reply = await orchestrator.ask(text)
        except PolicyPathError as e:
            print(f"⚠ {e}")
            continue
        print(f"\nMentor: {reply.text}")
    print()

    # ==================== Step 3: Vault ====================
    banner("STEP 3: The Constitutional Vault")
    entries = await orchestrator.vault()
    for entry in entries:
        print(f"- {entry.title}: {entry.notes}")
    if not entries:
        print("  (empty)")
    print()

    # ==================== Step 4: Quiz ====================
    banner("STEP 4: Quiz")
    try:
        session = await orchestrator.start_quiz()
    except EmptyVaultError as e:
        print(f"⚠ {e}")
    else:
        for number, question in enumerate(session.questions, start=1):
            print(f"\nQ{number}. {question.question}")
            for letter, option in zip("ABCDEFGH", question.options):
                print(f"   {letter}. {option}")
            choice = input("Answer letter: ").strip().upper()
            index = "ABCDEFGH".find(choice)
            option = question.options[index] if 0 <= index < len(question.options) else ""
            outcome = await orchestrator.answer_quiz(option)
            print("   ✓ Correct" if outcome.correct else f"   ✗ Answer: {outcome.correct_answer}")

        result = orchestrator.quiz.last_result
        print(f"\nScore: {result.score}/{result.total_questions} (passed={result.passed})")
        orchestrator.close_quiz()
    print()

    # ==================== Step 5: Profile ====================
    banner("STEP 5: Profile")
    profile = orchestrator.profile
    print(f"XP: {profile.xp}")
    print(f"Streak: {profile.streak} day(s)")
    print(f"Topics mastered: {profile.topics_mastered}")
    print()
    print(token_tracker.summary())

    orchestrator.end_session()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
