import os
import nextcord
from nextcord.ext import commands
from dotenv import load_dotenv, find_dotenv

# Load environment variables from .env file
env_path = find_dotenv(usecwd=True)
if not env_path:
    raise RuntimeError("Couldn't find a .env file. Put one next to bot.py.")
load_dotenv(env_path)

TOKEN = os.getenv("DISCORD_TOKEN")
if not TOKEN:
    raise RuntimeError("DISCORD_TOKEN missing. Check .env contents and spelling.")

PREFIX = os.getenv("BOT_PREFIX", "!")

# Enable the necessary intents
intents = nextcord.Intents.default()
intents.message_content = True  # chat is forwarded to the sandbox

bot = commands.Bot(command_prefix=PREFIX, intents=intents)

initial_extensions = [
    "cogs.tabletop",
]

@bot.event
async def on_ready():
    print(f"✅ Logged in as {bot.user}")

for ext in initial_extensions:
    try:
        bot.load_extension(ext)
        print(f"Loaded: {ext}")
    except Exception as e:
        print(f"Failed to load {ext}: {e}")


bot.run(TOKEN)
