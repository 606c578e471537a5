"""Outbound notifications for finished transcriptions."""

from ptt_relay.notify.telegram import TelegramNotifier

__all__ = ["TelegramNotifier"]
