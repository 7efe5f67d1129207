"""
Outbound notifications for recorded actions (Telegram, Discord, event bus).
"""
