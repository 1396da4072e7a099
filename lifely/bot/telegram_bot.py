"""
Lifely — Telegram Bot.

Telegram is the user interface of Lifely. Chat (typed or spoken), habits,
alarms, journal and settings all flow through this bot; alarms ring back
through it via the job queue.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import json
import logging
import re
import tempfile
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Coroutine
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from lifely.config import settings
from lifely.core.alarm_schedule import DAY_NAMES, format_days, next_occurrence
from lifely.core.chat_service import ChatResponse, ChatService, SuccessResponse
from lifely.core.habit_progress import summarize
from lifely.data.models import ValidationError
from lifely.data.store import StorageError

if TYPE_CHECKING:
    from lifely.core.alarm_service import AlarmService
    from lifely.core.habit_service import HabitService
    from lifely.core.journal_service import JournalService
    from lifely.core.settings_service import SettingsService
    from lifely.data.models import Alarm
    from lifely.data.store import EntityStore
    from lifely.ports.notification_port import NotificationPort
    from lifely.ports.reasoning_port import ReasoningPort

logger = logging.getLogger(__name__)

_STORAGE_NOTICE = "Couldn't reach your data right now. Please try again."


def _now() -> datetime:
    """Current time in the user's time zone."""
    return datetime.now(ZoneInfo(settings.TIMEZONE))


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users."""

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Argument parsing helpers
# ---------------------------------------------------------------------------

_FULL_DAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
_DAY_ALIASES = {name.lower(): i for i, name in enumerate(DAY_NAMES)}
_DAY_ALIASES.update({name: i for i, name in enumerate(_FULL_DAY_NAMES)})
_DAY_GROUPS = {
    "daily": list(range(7)),
    "everyday": list(range(7)),
    "weekdays": [1, 2, 3, 4, 5],
    "weekends": [0, 6],
}


def _parse_days(token: str) -> list[int] | None:
    """Parse "mon,wed,fri", "weekdays", "daily" into day indices (0 = Sunday).

    Returns None if the token is not a day list.
    """
    token = token.strip().lower()
    if token in _DAY_GROUPS:
        return list(_DAY_GROUPS[token])
    days: list[int] = []
    for part in token.split(","):
        part = part.strip()
        if part not in _DAY_ALIASES:
            return None
        days.append(_DAY_ALIASES[part])
    return sorted(set(days))


def _parse_note(text: str) -> tuple[str, str, list[str]] | None:
    """Split "<title> | <content> #tag #tag" into (title, content, tags)."""
    if "|" not in text:
        return None
    title, content = (part.strip() for part in text.split("|", 1))
    tags = re.findall(r"#(\w[\w-]*)", content)
    content = re.sub(r"\s*#\w[\w-]*", "", content).strip()
    if not title or not content:
        return None
    return title, content, tags


def _parse_index(args: list[str], count: int) -> int | None:
    """1-based list position from the first argument, as a 0-based index."""
    if not args:
        return None
    try:
        position = int(args[0])
    except ValueError:
        return None
    if not 1 <= position <= count:
        return None
    return position - 1


def _format_alarm(alarm: Alarm, now: datetime) -> str:
    status = "on" if alarm.is_enabled else "off"
    schedule = "once"
    if alarm.is_recurring:
        schedule = format_days(alarm.days) if alarm.days else "every day"
    line = f"{alarm.time} {alarm.label} ({schedule}, {status})"
    upcoming = next_occurrence(alarm, now)
    if upcoming is not None:
        line += f", next {upcoming.strftime('%a %H:%M')}"
    return line


def _render_chat_response(response: ChatResponse) -> str:
    if not isinstance(response, SuccessResponse):
        return response.message
    lines = [response.message]
    for outcome in response.outcomes:
        lines.append(f"✅ {outcome.summary}")
    for warning in response.warnings:
        lines.append(f"⚠️ Couldn't do that: {warning}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


async def _process_text(
    text: str, update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Shared logic for typed and transcribed messages: one chat turn."""
    chat: ChatService = context.bot_data["chat"]

    session = chat.active_session
    try:
        if session is None:
            session = await chat.create_session()
    except StorageError as exc:
        logger.error("Could not create a chat session: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return

    response = await chat.send_message(session.id, text)
    await update.message.reply_text(_render_chat_response(response))


@authorized_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle plain text messages — one conversational turn."""
    await _process_text(update.message.text, update, context)


@authorized_only
async def handle_voice(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle voice messages — transcribe via Whisper, then chat."""
    from lifely.core.transcriber import transcribe_audio

    settings_service: SettingsService = context.bot_data["settings_service"]
    try:
        user_settings = await settings_service.load_settings()
    except StorageError as exc:
        logger.error("Voice: cannot read settings: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return
    if not user_settings.voice_input:
        await update.message.reply_text(
            "Voice input is turned off. Turn it on with /set voice_input on"
        )
        return

    voice = update.message.voice
    tmp_path: str | None = None
    try:
        voice_file = await context.bot.get_file(voice.file_id)
        with tempfile.NamedTemporaryFile(suffix=".ogg", delete=False) as tmp:
            tmp_path = tmp.name
        await voice_file.download_to_drive(tmp_path)
        text = await transcribe_audio(tmp_path)
    except Exception as exc:
        logger.error("Voice handling error: %s", exc)
        await update.message.reply_text(
            "Sorry, I couldn't process your voice message. Please try again."
        )
        return
    finally:
        if tmp_path:
            Path(tmp_path).unlink(missing_ok=True)

    if not text:
        await update.message.reply_text("I couldn't hear anything in that message.")
        return
    logger.info("Voice transcribed: %s", text[:80])
    await update.message.reply_text(f"🎤 I heard: {text}")
    await _process_text(text, update, context)


# ---------------------------------------------------------------------------
# Command handlers: general and chat sessions
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — welcome message."""
    await update.message.reply_text(
        "Welcome to *Lifely*!\n\n"
        "I'm your personal assistant:\n"
        "• Chat with me by text or voice\n"
        "• Ask me to set alarms or track habits in plain words\n"
        "• Keep a journal with /note\n\n"
        "Type /help for the full command list.",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "Chats\n"
        "/new - Start a new chat\n"
        "/chats - List chats\n"
        "/switch <n> - Continue chat n\n\n"
        "Habits\n"
        "/habits - Today's progress and the last 7 days\n"
        "/addhabit <goal> <unit> <name> - Add a habit\n"
        "/log <value> <name> - Log progress\n\n"
        "Alarms\n"
        "/alarms - List alarms\n"
        "/addalarm HH:MM [days] <label> - Add an alarm (days: mon,wed or weekdays)\n"
        "/togglealarm <n> - Turn alarm n on/off\n"
        "/delalarm <n> - Delete alarm n\n\n"
        "Journal\n"
        "/journal [query] - Recent or matching entries\n"
        "/note <title> | <content> #tags - Write an entry\n\n"
        "Settings\n"
        "/settings - Show settings\n"
        "/set <name> <value> - Change a setting\n"
        "/export - Download all your data\n"
        "/wipe confirm - Delete chats, habits, alarms and journal",
    )


@authorized_only
async def cmd_new(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /new — start a fresh chat session."""
    chat: ChatService = context.bot_data["chat"]
    try:
        await chat.create_session()
    except StorageError as exc:
        logger.error("/new error: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return
    await update.message.reply_text("Started a new chat.")


@authorized_only
async def cmd_chats(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /chats — list sessions, most recent first."""
    chat: ChatService = context.bot_data["chat"]
    sessions = chat.list_sessions()
    if not sessions:
        await update.message.reply_text("No chats yet.")
        return

    active = chat.active_session
    lines = ["Your chats:"]
    for i, session in enumerate(sessions, start=1):
        marker = "▶ " if active is not None and session.id == active.id else ""
        updated = session.updated_at.astimezone(ZoneInfo(settings.TIMEZONE))
        lines.append(f"{i}. {marker}{session.title} ({updated.strftime('%m/%d %H:%M')})")
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_switch(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /switch <n> — make chat n the active one."""
    chat: ChatService = context.bot_data["chat"]
    sessions = chat.list_sessions()
    index = _parse_index(context.args or [], len(sessions))
    if index is None:
        await update.message.reply_text("Usage: /switch <n>\nUse /chats to see the numbers.")
        return
    session = chat.select_session(sessions[index].id)
    await update.message.reply_text(f"Switched to: {session.title}")


# ---------------------------------------------------------------------------
# Command handlers: habits
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_habits(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /habits — progress for every habit."""
    habits: HabitService = context.bot_data["habits"]
    try:
        habit_list = await habits.list_habits()
    except StorageError as exc:
        logger.error("/habits error: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return

    if not habit_list:
        await update.message.reply_text("No habits yet. Add one with /addhabit")
        return

    now = _now()
    blocks = []
    for habit in habit_list:
        progress = summarize(habit, now)
        trend = " ".join(f"{p.label}:{p.value:g}" for p in progress.trend)
        blocks.append(
            f"{progress.name}: {progress.today_total:g}/{progress.goal:g} "
            f"{progress.unit} ({progress.percent}%)\n{trend}"
        )
    await update.message.reply_text("\n\n".join(blocks))


@authorized_only
async def cmd_addhabit(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /addhabit <goal> <unit> <name>."""
    habits: HabitService = context.bot_data["habits"]
    args = context.args or []
    if len(args) < 3:
        await update.message.reply_text("Usage: /addhabit <goal> <unit> <name>\nExample: /addhabit 8 glasses Drink water")
        return
    try:
        goal = float(args[0])
    except ValueError:
        await update.message.reply_text("The goal must be a number.")
        return

    try:
        habit = await habits.create_habit(name=" ".join(args[2:]), goal=goal, unit=args[1])
    except ValidationError as exc:
        await update.message.reply_text(f"Couldn't add habit: {exc}")
        return
    except StorageError as exc:
        logger.error("/addhabit error: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return
    await update.message.reply_text(f"✅ Habit '{habit.name}' added: {habit.goal:g} {habit.unit} a day.")


@authorized_only
async def cmd_log(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /log <value> <name> — log habit progress."""
    habits: HabitService = context.bot_data["habits"]
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text("Usage: /log <value> <habit name>")
        return
    try:
        value = float(args[0])
    except ValueError:
        await update.message.reply_text("The value must be a number.")
        return

    name = " ".join(args[1:])
    try:
        habit = await habits.track_by_name(name, value)
    except ValidationError as exc:
        await update.message.reply_text(str(exc))
        return
    except StorageError as exc:
        logger.error("/log error: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return
    if habit is None:
        await update.message.reply_text(f"No habit named '{name}'. Use /habits to see them.")
        return

    progress = summarize(habit, _now())
    await update.message.reply_text(
        f"✅ Logged {value:g} {habit.unit} for '{habit.name}'. "
        f"Today: {progress.today_total:g}/{habit.goal:g} ({progress.percent}%)"
    )


# ---------------------------------------------------------------------------
# Command handlers: alarms
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_alarms(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /alarms — numbered alarm list."""
    alarms: AlarmService = context.bot_data["alarms"]
    try:
        alarm_list = await alarms.list_alarms()
    except StorageError as exc:
        logger.error("/alarms error: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return

    if not alarm_list:
        await update.message.reply_text("No alarms set.")
        return
    now = _now()
    lines = [f"{i}. {_format_alarm(a, now)}" for i, a in enumerate(alarm_list, start=1)]
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_addalarm(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /addalarm HH:MM [days] <label>."""
    alarms: AlarmService = context.bot_data["alarms"]
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text(
            "Usage: /addalarm HH:MM [days] <label>\n"
            "Examples: /addalarm 07:00 Wake up\n"
            "/addalarm 06:30 mon,wed,fri Gym"
        )
        return

    days = _parse_days(args[1]) if len(args) > 2 else None
    label_words = args[2:] if days is not None else args[1:]
    try:
        alarm = await alarms.create_alarm(
            time=args[0],
            label=" ".join(label_words),
            days=days or [],
            is_recurring=days is not None,
        )
    except ValidationError as exc:
        await update.message.reply_text(f"Couldn't add alarm: {exc}")
        return
    except StorageError as exc:
        logger.error("/addalarm error: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return
    await update.message.reply_text(f"⏰ Alarm set: {_format_alarm(alarm, _now())}")


async def _alarm_at(update: Update, context: ContextTypes.DEFAULT_TYPE, usage: str) -> Alarm | None:
    """Resolve the alarm numbered by the first argument, replying on failure."""
    alarms: AlarmService = context.bot_data["alarms"]
    alarm_list = await alarms.list_alarms()
    index = _parse_index(context.args or [], len(alarm_list))
    if index is None:
        await update.message.reply_text(f"Usage: {usage}\nUse /alarms to see the numbers.")
        return None
    return alarm_list[index]


@authorized_only
async def cmd_togglealarm(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /togglealarm <n>."""
    alarms: AlarmService = context.bot_data["alarms"]
    try:
        alarm = await _alarm_at(update, context, "/togglealarm <n>")
        if alarm is None:
            return
        updated = await alarms.set_enabled(alarm.id, not alarm.is_enabled)
    except StorageError as exc:
        logger.error("/togglealarm error: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return
    if updated is None:
        await update.message.reply_text("That alarm no longer exists.")
        return
    state = "on" if updated.is_enabled else "off"
    await update.message.reply_text(f"Alarm '{updated.label}' turned {state}.")


@authorized_only
async def cmd_delalarm(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delalarm <n>."""
    alarms: AlarmService = context.bot_data["alarms"]
    try:
        alarm = await _alarm_at(update, context, "/delalarm <n>")
        if alarm is None:
            return
        await alarms.delete_alarm(alarm.id)
    except StorageError as exc:
        logger.error("/delalarm error: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return
    await update.message.reply_text(f"🗑 Alarm '{alarm.label}' deleted.")


# ---------------------------------------------------------------------------
# Command handlers: journal
# ---------------------------------------------------------------------------

_JOURNAL_PAGE = 10


@authorized_only
async def cmd_journal(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /journal [query] — recent or matching entries."""
    journal: JournalService = context.bot_data["journal"]
    query = " ".join(context.args or [])
    try:
        entries = await journal.search(query) if query else await journal.list_entries()
    except StorageError as exc:
        logger.error("/journal error: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return

    if not entries:
        await update.message.reply_text(f"No entries match '{query}'." if query else "Your journal is empty.")
        return

    tz = ZoneInfo(settings.TIMEZONE)
    blocks = []
    for entry in entries[:_JOURNAL_PAGE]:
        tags = " ".join(f"#{t}" for t in entry.tags)
        header = f"{entry.date.astimezone(tz).strftime('%Y-%m-%d')} {entry.title}"
        blocks.append(f"{header}\n{entry.content}" + (f"\n{tags}" if tags else ""))
    if len(entries) > _JOURNAL_PAGE:
        blocks.append(f"…and {len(entries) - _JOURNAL_PAGE} more.")
    await update.message.reply_text("\n\n".join(blocks))


@authorized_only
async def cmd_note(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /note <title> | <content> [#tags]."""
    journal: JournalService = context.bot_data["journal"]
    parsed = _parse_note(" ".join(context.args or []))
    if parsed is None:
        await update.message.reply_text("Usage: /note <title> | <content> #tag")
        return

    title, content, tags = parsed
    try:
        entry = await journal.create_entry(title, content, tags=tags)
    except ValidationError as exc:
        await update.message.reply_text(f"Couldn't save the entry: {exc}")
        return
    except StorageError as exc:
        logger.error("/note error: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return
    await update.message.reply_text(f"📝 Saved '{entry.title}'.")


# ---------------------------------------------------------------------------
# Command handlers: settings and data
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_settings(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /settings — show every setting and its value."""
    settings_service: SettingsService = context.bot_data["settings_service"]
    try:
        user_settings = await settings_service.load_settings()
    except StorageError as exc:
        logger.error("/settings error: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return

    lines = ["Settings:"]
    for name, value in user_settings.model_dump().items():
        shown = ("on" if value else "off") if isinstance(value, bool) else value
        lines.append(f"{name}: {shown}")
    lines.append("\nChange with /set <name> <value>")
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_set(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /set <name> <value>."""
    settings_service: SettingsService = context.bot_data["settings_service"]
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text("Usage: /set <name> <value>\nUse /settings to see the names.")
        return

    name, raw_value = args[0], " ".join(args[1:])
    try:
        user_settings = await settings_service.update_setting(name, raw_value)
    except ValidationError as exc:
        await update.message.reply_text(f"Couldn't change setting: {exc}")
        return
    except StorageError as exc:
        logger.error("/set error: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return

    if name in ("use_local_llm", "llm_endpoint", "llm_model"):
        _rewire_reasoning(context.application, user_settings)
    await update.message.reply_text(f"✅ {name} updated.")


@authorized_only
async def cmd_wipe(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /wipe confirm — delete all user data except settings."""
    if (context.args or [""])[0].lower() != "confirm":
        await update.message.reply_text(
            "This deletes all chats, habits, alarms and journal entries.\n"
            "Send /wipe confirm to continue."
        )
        return

    settings_service: SettingsService = context.bot_data["settings_service"]
    chat: ChatService = context.bot_data["chat"]
    try:
        await settings_service.wipe_user_data()
        await chat.load_sessions()
    except StorageError as exc:
        logger.error("/wipe error: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return
    await update.message.reply_text("🧹 All your data has been deleted. Settings were kept.")


@authorized_only
async def cmd_export(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /export — send every collection as a JSON document."""
    settings_service: SettingsService = context.bot_data["settings_service"]
    try:
        snapshot = await settings_service.export_data()
    except StorageError as exc:
        logger.error("/export error: %s", exc)
        await update.message.reply_text(_STORAGE_NOTICE)
        return

    payload = json.dumps(snapshot, indent=2, ensure_ascii=False).encode("utf-8")
    filename = f"lifely-export-{_now().strftime('%Y%m%d')}.json"
    await update.message.reply_document(document=payload, filename=filename)


# ---------------------------------------------------------------------------
# Alarm job
# ---------------------------------------------------------------------------


async def _alarm_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Job queue callback: ring alarms due this minute."""
    from lifely.core.alarm_ringer import ring_due_alarms

    settings_service: SettingsService = context.bot_data["settings_service"]
    try:
        await ring_due_alarms(
            context.bot_data["alarms"],
            context.bot_data["notifier"],
            settings.ALLOWED_USER_IDS,
            _now(),
            user_settings=await settings_service.load_settings(),
            rung=context.bot_data["rung"],
        )
    except StorageError as exc:
        logger.error("Alarm check failed: %s", exc)


def _setup_alarm_job(app: Application) -> None:
    """Register the repeating alarm check."""
    app.job_queue.run_repeating(
        _alarm_job,
        interval=settings.ALARM_CHECK_INTERVAL_SECONDS,
        first=1,
        name="alarm_check",
    )
    logger.info("Alarm check scheduled every %ds", settings.ALARM_CHECK_INTERVAL_SECONDS)


# ---------------------------------------------------------------------------
# App lifecycle
# ---------------------------------------------------------------------------


def _rewire_reasoning(app: Application, user_settings: Any) -> None:
    """Point the chat service at the reasoning adapter the settings ask for."""
    if app.bot_data.get("fixed_reasoning"):
        return
    from lifely.adapters.reasoning_factory import create_reasoning_service

    chat: ChatService = app.bot_data["chat"]
    chat.reasoning = create_reasoning_service(user_settings)
    logger.info("Reasoning adapter: %s", type(chat.reasoning).__name__)


async def _post_init(app: Application) -> None:
    """Open the store and load state before polling starts."""
    store: EntityStore = app.bot_data["store"]
    settings_service: SettingsService = app.bot_data["settings_service"]
    chat: ChatService = app.bot_data["chat"]

    await store.open()
    user_settings = await settings_service.load_settings()
    _rewire_reasoning(app, user_settings)
    await chat.load_sessions()


async def _post_shutdown(app: Application) -> None:
    store: EntityStore = app.bot_data["store"]
    await store.close()


def build_app(
    store: EntityStore | None = None,
    reasoning: ReasoningPort | None = None,
    notifier: NotificationPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        store: Entity Store. Defaults to one at DATABASE_PATH; opened in
               post_init and closed in post_shutdown.
        reasoning: Reasoning port. Defaults to the adapter selected by
                   REASONING_PROVIDER and the user's local-LLM setting.
        notifier: Notification port. Defaults to TelegramNotifier.
    """
    from lifely.adapters.reasoning_factory import create_reasoning_service
    from lifely.core.alarm_service import AlarmService
    from lifely.core.habit_service import HabitService
    from lifely.core.journal_service import JournalService
    from lifely.core.settings_service import SettingsService
    from lifely.data.store import EntityStore

    app = (
        ApplicationBuilder()
        .token(settings.TELEGRAM_BOT_TOKEN)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
        .build()
    )

    if store is None:
        store = EntityStore(settings.DATABASE_PATH)

    if notifier is None:
        from lifely.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)

    alarms = AlarmService(store)
    habits = HabitService(store)

    # Store services in bot_data for handler access
    app.bot_data["store"] = store
    app.bot_data["alarms"] = alarms
    app.bot_data["habits"] = habits
    app.bot_data["journal"] = JournalService(store)
    app.bot_data["settings_service"] = SettingsService(store)
    app.bot_data["chat"] = ChatService(
        store, reasoning or create_reasoning_service(), alarms, habits,
    )
    app.bot_data["fixed_reasoning"] = reasoning is not None
    app.bot_data["notifier"] = notifier
    app.bot_data["rung"] = {}

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("new", cmd_new))
    app.add_handler(CommandHandler("chats", cmd_chats))
    app.add_handler(CommandHandler("switch", cmd_switch))
    app.add_handler(CommandHandler("habits", cmd_habits))
    app.add_handler(CommandHandler("addhabit", cmd_addhabit))
    app.add_handler(CommandHandler("log", cmd_log))
    app.add_handler(CommandHandler("alarms", cmd_alarms))
    app.add_handler(CommandHandler("addalarm", cmd_addalarm))
    app.add_handler(CommandHandler("togglealarm", cmd_togglealarm))
    app.add_handler(CommandHandler("delalarm", cmd_delalarm))
    app.add_handler(CommandHandler("journal", cmd_journal))
    app.add_handler(CommandHandler("note", cmd_note))
    app.add_handler(CommandHandler("settings", cmd_settings))
    app.add_handler(CommandHandler("set", cmd_set))
    app.add_handler(CommandHandler("wipe", cmd_wipe))
    app.add_handler(CommandHandler("export", cmd_export))

    # Text messages (non-command)
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    # Voice messages
    app.add_handler(MessageHandler(filters.VOICE, handle_voice))

    _setup_alarm_job(app)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(settings.LOG_LEVEL)
    logger.info("Starting Lifely bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
