"""Discord bot integration for Paddock.

The bot runs in-process with FastAPI, sharing the same event loop.
It posts check-in messages with team buttons, relays check-in changes
to a notification channel, and keeps roster messages in step with
role membership.

Optional: if DISCORD_BOT_TOKEN is not set, the app runs without Discord.
"""
