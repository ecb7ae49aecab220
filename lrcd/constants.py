# Line protocol literals. Every response is terminated by "\n" except PROMPT.

PROMPT = "Enter a command: "

# Command tokens (case-sensitive, exact match on the first token)
CMD_JOIN = "/join"
CMD_LEAVE = "/leave"
CMD_PM = "/pm"
CMD_REPLY = "/reply"
CMD_REPLY_SHORT = "/r"
CMD_REACT = "/react"
CMD_CHANNELS = "/channels"
CMD_QUIT = "/quit"

HELP_HEADER = "Available commands:\n"
HELP_LINES = (
    "/join <channel> - Join a channel",
    "/leave <channel> - Leave a channel",
    "/pm <recipient> <message> - Send a private message",
    "/reply <message> or /r <message> - Reply to the last private message received",
    "/react <emoji> - React to a message with an emoji",
    "/channels - List all available channels",
    "/quit - Disconnect from the server",
)

WELCOME_FMT = "Welcome, {username}! You are now connected.\n"
GOODBYE = "Goodbye! Disconnecting from the server.\n"

JOINED_FMT = "You joined the channel: {channel}\n"
JOIN_HINT_FMT = "To leave the channel, use the command: /leave {channel}\n"
LEFT_FMT = "You left the channel: {channel}\n"

CHANNELS_NONE = "No channels available.\n"
CHANNELS_HEADER = "Available channels:\n"
LIST_ITEM_FMT = "- {item}\n"

CHANNEL_MSG_FMT = "{channel}: [{id}] {sender}: {text}"
MENTION_FMT = "[MENTION] {sender}: {text}\n"
PRIVATE_IN_FMT = "(private) {sender}: {text}\n"
PRIVATE_OUT_FMT = "(private) to {recipient}: {text}\n"
REACTION_FMT = "{username} reacted with {emoji} to the message: {message}\n"

# Mention tokens: "@" followed by ASCII word characters.
MENTION_PATTERN = r"@(\w+)"

# 0 disables the username length limit.
USERNAME_MAX_CHARS = 0
DEFAULT_REACTION = "\N{THUMBS UP SIGN}"
