REDIS_ROOM_KEY = "room:{slug}" # room id - JSON encoded room state
REDIS_ROOM_PATTERN = "room:*" # scan pattern for every room record
REDIS_ROOM_PREFIX = "room:"

# **Example `room:{id}` value**
# {"currentSong": "https://...", "currentSongId": "abc", "currentTime": 12.5,
#  "isPlaying": true, "users": ["<conn>", ...], "leaderId": "<conn>",
#  "mood": "happy", "language": "english", "title": "...", "artist": "..."}
# Every write sets EX to ROOM_TTL_SECONDS.
