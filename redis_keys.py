RELAY_ROOM_CHANNEL = "relay:room:{room}" # room name, e.g. project:abc123 - pub/sub channel name

# **Envelope published on `relay:room:{room}`**
# - `origin` = instance id of the publishing process
# - `sender` = connection id that emitted the event (never receives it back)
# - `room` = room name
# - `event` = event name, e.g. task-moved
# - `payload` = client payload, forwarded unchanged
