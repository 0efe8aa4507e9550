# Inbound events (client -> server)
SET_USERNAME = "setUsername"
JOIN_ROOM = "joinRoom"
JOIN_WITH_INVITE = "joinWithInvite"
CREATE_ROOM = "createRoom"
TYPING = "typing"
STOP_TYPING = "stopTyping"
FILE_SHARED = "fileShared"
CHAT_MESSAGE = "chatMessage"

# Outbound events (server -> client)
ROOM_LIST = "roomList"
MEMBER_LIST = "memberList"
SYSTEM_MESSAGE = "systemMessage"
ACK = "ack"
# typing, stopTyping, fileShared and chatMessage are relayed under their inbound names

# **Frame shapes**
# - inbound:  {"event": "<name>", "data": <payload>, "id": <optional ack id>}
# - outbound: {"event": "<name>", "data": <payload>}
# - ack:      {"event": "ack", "id": <ack id>, "data": {"success": bool, ...}}
