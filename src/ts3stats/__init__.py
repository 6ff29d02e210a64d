"""ts3stats - TeamSpeak 3 server metrics for Telegraf."""

__version__ = "0.1.0"
