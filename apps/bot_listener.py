import asyncio
import logging

from telegram import Update
from telegram.ext import (
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
)

from core.errors import InvalidInput
from core.logging import configure_logging
from core.settings import load_settings
from signals.engine import normalize_symbol
from .jobs import (
    HELP_TEXT,
    build_context,
    format_summary,
    positions_text,
    run_daily_cycle,
    summary_text,
    trades_text,
    watchlist_for,
)


def restricted(func):
    """
    Decorator to block unauthorized chats but reply politely.
    """
    async def wrapped(update: Update, context: ContextTypes.DEFAULT_TYPE):
        authorized = str(context.application.bot_data["settings"].telegram_chat_id)
        chat_id = str(update.effective_chat.id)
        if chat_id != authorized:
            await update.message.reply_text("🚫 You are not authorized to use this bot.")
            logging.warning("Unauthorized access attempt from %s", chat_id)
            return
        await func(update, context)
    return wrapped


def _ctx(context: ContextTypes.DEFAULT_TYPE):
    return build_context(context.application.bot_data["settings"])


@restricted
async def run(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Manual trigger: same code path as the scheduled run."""
    msg = await update.message.reply_text("🕑 Running the daily paper-trading cycle…")
    try:
        summary = await asyncio.to_thread(run_daily_cycle, _ctx(context), notify=False)
        if summary is None:
            await msg.edit_text("⏸️ No run: market closed or a run is already in progress.")
        else:
            await msg.edit_text(format_summary(summary))
    except Exception as e:
        logging.error("Daily run failed: %s", e)
        await msg.edit_text(f"❌ Daily run failed – {e}")


@restricted
async def positions(update: Update, context: ContextTypes.DEFAULT_TYPE):
    text = await asyncio.to_thread(positions_text, _ctx(context))
    await update.message.reply_text(text)


@restricted
async def trades(update: Update, context: ContextTypes.DEFAULT_TYPE):
    try:
        days = int(context.args[0]) if context.args else 1
    except ValueError:
        return await update.message.reply_text("Usage: /trades [DAYS]")
    text = await asyncio.to_thread(trades_text, _ctx(context), max(1, days))
    await update.message.reply_text(text)


@restricted
async def summary(update: Update, context: ContextTypes.DEFAULT_TYPE):
    msg = await update.message.reply_text("🕑 Pricing open positions…")
    text = await asyncio.to_thread(summary_text, _ctx(context))
    await msg.edit_text(text)


@restricted
async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await update.message.reply_text(HELP_TEXT)


@restricted
async def add(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not context.args:
        return await update.message.reply_text("Usage: /add SYMBOL")
    try:
        symbol = normalize_symbol(context.args[0])
    except InvalidInput as e:
        return await update.message.reply_text(f"❌ {e}")
    _ctx(context).store.add_to_watchlist(symbol)
    await update.message.reply_text(f"✅ Added {symbol} to your watchlist.")


@restricted
async def remove(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not context.args:
        return await update.message.reply_text("Usage: /remove SYMBOL")
    symbol = context.args[0].upper()
    _ctx(context).store.remove_from_watchlist(symbol)
    await update.message.reply_text(f"🗑️ Removed {symbol} from your watchlist.")


@restricted
async def list_watchlist(update: Update, context: ContextTypes.DEFAULT_TYPE):
    symbols = watchlist_for(_ctx(context))
    if not symbols:
        await update.message.reply_text("📭 Your watchlist is empty.")
    else:
        formatted = "\n".join(f"• {s}" for s in symbols)
        await update.message.reply_text(f"📋 Your Watchlist:\n{formatted}")


def main():
    settings = load_settings()
    configure_logging(settings.log_file)
    if not settings.telegram_token:
        raise SystemExit("telegram.bot_token missing from config.toml")

    build_context(settings)  # fail fast if the store is unreachable

    app = ApplicationBuilder().token(settings.telegram_token).build()
    app.bot_data["settings"] = settings

    app.add_handler(CommandHandler("run", run))
    app.add_handler(CommandHandler("positions", positions))
    app.add_handler(CommandHandler("trades", trades))
    app.add_handler(CommandHandler("summary", summary))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("add", add))
    app.add_handler(CommandHandler("remove", remove))
    app.add_handler(CommandHandler("watchlist", list_watchlist))

    app.run_polling()


if __name__ == "__main__":
    main()
