"""
Reminder Pal — Telegram Bot.

Telegram is the only user interface. Every interaction (creating reminders,
listing, cancelling, button taps on alerts, free chat) flows through this
bot into the UI-agnostic ReminderService.

The job queue drives the scheduler tick and the session sweep.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from functools import wraps
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Coroutine

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from src.config import settings
from src.core.actions import InteractiveAction
from src.core.lifecycle import ReminderLifecycle
from src.core.reminder_service import ChoicePromptResponse, ReminderService, ServiceResponse
from src.core.scheduler import Clock, Scheduler, system_clock
from src.core.sessions import SessionRegistry
from src.data.store import ReminderStore

if TYPE_CHECKING:
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_APOLOGY = "Sorry, something went wrong while handling your message. Please try again."


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users.

    An empty ALLOWED_USER_IDS opens the bot to everyone.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        allowed = settings.ALLOWED_USER_IDS
        if user is None or (allowed and user.id not in allowed):
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _owner_id(update: Update) -> str:
    return str(update.effective_user.id)


def _service(context: ContextTypes.DEFAULT_TYPE) -> ReminderService:
    return context.bot_data["service"]


def _now(context: ContextTypes.DEFAULT_TYPE):
    clock: Clock = context.bot_data.get("clock", system_clock)
    return clock()


def _markup(response: ServiceResponse) -> InlineKeyboardMarkup | None:
    if not isinstance(response, ChoicePromptResponse):
        return None
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(opt.label, callback_data=opt.id)] for opt in response.options]
    )


async def _reply(update: Update, response: ServiceResponse) -> None:
    await update.effective_message.reply_text(response.message, reply_markup=_markup(response))


async def _respond(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    handler: Callable[[ReminderService, str], ServiceResponse | Awaitable[ServiceResponse]],
) -> None:
    """Greet first-time users, then run one service call and render it."""
    owner_id = _owner_id(update)
    service = _service(context)
    try:
        welcome = service.greet(owner_id, _now(context), update.effective_user.first_name)
        if welcome is not None:
            await _reply(update, welcome)
            return

        response = handler(service, owner_id)
        if not isinstance(response, ServiceResponse):
            response = await response
    except Exception as exc:
        logger.error("Handler error for %s: %s", owner_id, exc)
        await update.effective_message.reply_text(_APOLOGY)
        return

    await _reply(update, response)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — welcome new users, show help to known ones."""
    await _respond(update, context, lambda service, owner: service.help_text())


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _respond(update, context, lambda service, owner: service.help_text())


@authorized_only
async def cmd_remind(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /remind <text>."""
    text = " ".join(context.args or [])
    now = _now(context)
    await _respond(update, context, lambda service, owner: service.create_from_text(owner, text, now))


@authorized_only
async def cmd_list(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _respond(update, context, lambda service, owner: service.list_reminders(owner))


@authorized_only
async def cmd_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /cancel (all, with confirmation) and /cancel <n> (one)."""
    args = context.args or []
    now = _now(context)

    if not args:
        await _respond(update, context, lambda service, owner: service.start_cancel_all(owner, now))
        return

    try:
        position = int(args[0])
    except ValueError:
        await update.message.reply_text("Usage: /cancel or /cancel <number from /list>")
        return
    await _respond(update, context, lambda service, owner: service.cancel_one(owner, position))


@authorized_only
async def cmd_stats(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _respond(update, context, lambda service, owner: service.stats(owner))


# ---------------------------------------------------------------------------
# Message handlers
# ---------------------------------------------------------------------------


def _route_text(text: str, now) -> Callable[[ReminderService, str], Any]:
    """Pick the service call for a free-text message."""
    lower = text.strip().lower()
    if lower.startswith(("@remind", "remind me")):
        return lambda service, owner: service.create_from_text(owner, text, now)
    if lower.startswith("@list") or "show reminders" in lower or "my reminders" in lower:
        return lambda service, owner: service.list_reminders(owner)
    if lower.startswith("@cancel"):
        return lambda service, owner: service.start_cancel_all(owner, now)
    if "@stats" in lower or "statistics" in lower:
        return lambda service, owner: service.stats(owner)
    if "@help" in lower or lower in ("?", "help"):
        return lambda service, owner: service.help_text()
    return lambda service, owner: service.answer(owner, text, now)


@authorized_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle plain text messages — commands in prose or a chat question."""
    await _respond(update, context, _route_text(update.message.text, _now(context)))


@authorized_only
async def handle_action_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle a button tap on an alert or a cancel-all prompt."""
    query = update.callback_query
    await query.answer()

    action = InteractiveAction.decode(query.data or "")
    if action is None:
        await query.message.reply_text("I'm sorry, I didn't understand that action.")
        return

    # Buttons are single-use
    try:
        await query.edit_message_reply_markup(reply_markup=None)
    except TelegramError as exc:
        logger.debug("Could not remove buttons: %s", exc)

    owner_id = _owner_id(update)
    try:
        response = _service(context).handle_action(owner_id, action, _now(context))
    except Exception as exc:
        logger.error("Action %s failed for %s: %s", action.encode(), owner_id, exc)
        await query.message.reply_text(_APOLOGY)
        return

    await query.message.reply_text(response.message, reply_markup=_markup(response))


# ---------------------------------------------------------------------------
# Periodic jobs
# ---------------------------------------------------------------------------


async def _tick_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    scheduler: Scheduler = context.bot_data["scheduler"]
    report = await scheduler.tick()
    if report.changed or report.skipped:
        logger.info(
            "Tick: fired=%d rescheduled=%d deactivated=%d skipped=%d failures=%d saved=%s",
            report.fired, report.rescheduled, report.deactivated,
            report.skipped, report.delivery_failures, report.saved,
        )


async def _sweep_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    sessions: SessionRegistry = context.bot_data["sessions"]
    sessions.sweep(_now(context), timedelta(minutes=settings.SESSION_TTL_MINUTES))


async def _post_shutdown(app: Application) -> None:
    store: ReminderStore = app.bot_data["store"]
    if store.save():
        logger.info("Reminder data saved on shutdown")


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    store: ReminderStore | None = None,
    notifier: NotificationPort | None = None,
    clock: Clock | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        store: Reminder store. Defaults to a ReminderStore loaded from DATA_DIR.
        notifier: Notification port implementation. Defaults to TelegramNotifier
                  (created from the bot instance after app is built).
        clock: Reference clock. Defaults to now in settings.TIMEZONE.
    """
    app = (
        ApplicationBuilder()
        .token(settings.TELEGRAM_BOT_TOKEN)
        .post_shutdown(_post_shutdown)
        .build()
    )

    if store is None:
        store = ReminderStore()
        store.load()

    if notifier is None:
        from src.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)

    clock = clock or system_clock
    lifecycle = ReminderLifecycle(store)
    sessions = SessionRegistry()

    # Store collaborators in bot_data for handler access
    app.bot_data["store"] = store
    app.bot_data["notifier"] = notifier
    app.bot_data["clock"] = clock
    app.bot_data["sessions"] = sessions
    app.bot_data["service"] = ReminderService(store, lifecycle, sessions)
    app.bot_data["scheduler"] = Scheduler(store, lifecycle, notifier, clock=clock)

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("remind", cmd_remind))
    app.add_handler(CommandHandler("list", cmd_list))
    app.add_handler(CommandHandler("cancel", cmd_cancel))
    app.add_handler(CommandHandler("stats", cmd_stats))
    app.add_handler(CallbackQueryHandler(handle_action_callback))

    # Text messages (non-command)
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    _setup_jobs(app)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def _setup_jobs(app: Application) -> None:
    """Register the scheduler tick and the session sweep."""
    app.job_queue.run_repeating(
        _tick_job,
        interval=settings.TICK_INTERVAL_SECONDS,
        first=1,
        name="reminder_tick",
    )
    app.job_queue.run_repeating(
        _sweep_job,
        interval=settings.SESSION_SWEEP_INTERVAL_MINUTES * 60,
        first=settings.SESSION_SWEEP_INTERVAL_MINUTES * 60,
        name="session_sweep",
    )
    logger.info(
        "Reminder tick every %ds, session sweep every %d min",
        settings.TICK_INTERVAL_SECONDS,
        settings.SESSION_SWEEP_INTERVAL_MINUTES,
    )


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting %s bot...", settings.SITE_NAME)
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
