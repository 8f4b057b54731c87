import os
import asyncio
import configparser

import nextcord
from nextcord.ext import commands

from sandbox.objects import BARS, bar_key
from sandbox.runtime import Sandbox
from sandbox.store import save_campaign, load_campaign
from scripts.dd4e import parse_int
from utils.config import load_config
from utils.names import resolve_name

CAMPAIGN_FILE = os.getenv("CAMPAIGN_FILE", os.path.join("data", "campaign.ini"))
SCRIPTS = ["scripts.dd4e"]


def _bar_text(token, bar: int) -> str:
    val = token.get(bar_key(bar))
    mx = token.get(bar_key(bar, "max"))
    if val == "" and mx == "":
        return "—"
    return f"{val}/{mx}" if mx != "" else f"{val}"


def create_token(sandbox: Sandbox, config, name: str, hp: int, thp: int = 0):
    """A character with HP/THP attributes, and a token whose bars are linked to them."""
    char = sandbox.create_obj("character", name=name)
    hp_attr = sandbox.create_obj("attribute", _characterid=char.id, name=config.hp_attribute, current=hp, max=hp)
    thp_attr = sandbox.create_obj("attribute", _characterid=char.id, name=config.thp_attribute, current=thp, max="")
    token = sandbox.create_obj("graphic", name=name, represents=char.id)
    sandbox.link_bar(token, config.hp_bar, hp_attr)
    sandbox.link_bar(token, config.thp_bar, thp_attr)
    return token


class Tabletop(commands.Cog):
    """Runs the tabletop sandbox and its scripts behind a Discord channel."""

    def __init__(self, bot):
        self.bot = bot
        self.config = load_config(os.getenv("DD4E_CONFIG"))
        self.sandbox = Sandbox()
        self.sandbox.add_chat_listener(self._relay_chat)
        self._channel = None
        self._sends = set()
        for name in SCRIPTS:
            try:
                self.sandbox.load_script(name, config=self.config)
                print(f"[tabletop] loaded script: {name}")
            except Exception as e:
                print(f"[tabletop] failed to load script {name}: {type(e).__name__}: {e}")
        if os.path.exists(CAMPAIGN_FILE):
            try:
                n = load_campaign(self.sandbox, CAMPAIGN_FILE)
                print(f"[tabletop] loaded {n} objects from {CAMPAIGN_FILE}")
            except (OSError, configparser.Error) as e:
                print(f"[tabletop] could not read {CAMPAIGN_FILE}, starting empty: {type(e).__name__}: {e}")

    def _relay_chat(self, speaker: str, text: str):
        if self._channel is None:
            print(f"[tabletop] (no channel) {speaker}: {text}")
            return
        task = asyncio.get_running_loop().create_task(self._channel.send(f"**{speaker}:** {text}"))
        self._sends.add(task)
        task.add_done_callback(self._send_done)

    def _send_done(self, task: asyncio.Task):
        self._sends.discard(task)
        if task.cancelled():
            return
        e = task.exception()
        if e is not None:
            print(f"[tabletop] failed to relay chat: {type(e).__name__}: {e}")

    def _tokens(self):
        return self.sandbox.all_objs("graphic")

    async def _resolve_token(self, ctx, name: str):
        tokens = self._tokens()
        names = [t.get("name") for t in tokens]
        resolved, sugg = resolve_name(names, name)
        if resolved is None:
            if sugg:
                await ctx.send("⚠️ Ambiguous token — did you mean: " + ", ".join(f"`{s}`" for s in sugg) + " ?")
            else:
                await ctx.send(f"❌ No token named **{name}**.")
            return None
        return next(t for t in tokens if t.get("name") == resolved)

    @commands.Cog.listener()
    async def on_message(self, message: nextcord.Message):
        if message.author.bot:
            return
        ctx = await self.bot.get_context(message)
        if ctx.valid:
            return
        self._channel = message.channel
        self.sandbox.chat(message.content, who=message.author.display_name, playerid=str(message.author.id))

    @commands.Cog.listener()
    async def on_command_error(self, ctx, error):
        # script commands (!damage, !thp) are not bot commands; the sandbox already has them
        if isinstance(error, commands.CommandNotFound):
            return
        if isinstance(error, commands.UserInputError):
            await ctx.send(f"❌ {error}")
            return
        name = ctx.command.qualified_name if ctx.command else "?"
        print(f"[tabletop] command !{name} failed: {type(error).__name__}: {error}")

    @commands.command(name="token")
    async def token(self, ctx, name: str, hp: int, thp: int = 0):
        """
        Drop a token on the table, linked to a fresh character sheet.
        Usage: `!token <name> <hp> [thp]`
        """
        if hp < 0 or thp < 0:
            await ctx.send("❌ Hit points can’t be negative.")
            return
        self._channel = ctx.channel
        token = create_token(self.sandbox, self.config, name, hp, thp)
        await ctx.send(f"✅ Token **{name}** placed (`{token.id}`) • HP {hp} • THP {thp}")

    @commands.command(name="tokens")
    async def tokens(self, ctx):
        """List tokens and their bars."""
        tokens = self._tokens()
        if not tokens:
            await ctx.send("ℹ️ No tokens on the table.")
            return
        lines = []
        for t in tokens:
            bars = " • ".join(f"bar{b} {_bar_text(t, b)}" for b in BARS)
            lines.append(f"• **{t.get('name') or t.id}** (`{t.id}`) {bars}")
        await ctx.send("\n".join(lines))

    @commands.command(name="bar")
    async def bar(self, ctx, name: str, bar: int, value: str):
        """
        Change a token bar as a player would.
        Usage: `!bar <token> <1|2|3> <value>`
        """
        if bar not in BARS:
            await ctx.send(f"❌ Bar must be one of {', '.join(map(str, BARS))}.")
            return
        token = await self._resolve_token(ctx, name)
        if token is None:
            return
        self._channel = ctx.channel
        num = parse_int(value)
        before = _bar_text(token, bar)
        self.sandbox.update(token, **{bar_key(bar): num if num is not None else value})
        # let the scripts' deferred writes land before reporting
        await asyncio.sleep(self.config.latency * 2 / 1000)
        await ctx.send(
            f"🎯 **{token.get('name')}** bar{bar} {before} → **{_bar_text(token, bar)}**\n"
            f"HP {_bar_text(token, self.config.hp_bar)} • THP {_bar_text(token, self.config.thp_bar)}"
        )

    @commands.command(name="campaign")
    async def campaign(self, ctx, action: str = "save"):
        """
        Save or reload the table.
        Usage: `!campaign save` / `!campaign load`
        """
        action = action.strip().lower()
        try:
            if action == "save":
                n = save_campaign(self.sandbox, CAMPAIGN_FILE)
                await ctx.send(f"💾 Saved {n} objects to `{CAMPAIGN_FILE}`.")
            elif action == "load":
                n = load_campaign(self.sandbox, CAMPAIGN_FILE)
                await ctx.send(f"📂 Loaded {n} objects from `{CAMPAIGN_FILE}`.")
            else:
                await ctx.send("❌ Usage: `!campaign save` or `!campaign load`")
        except FileNotFoundError:
            await ctx.send(f"❌ No campaign file at `{CAMPAIGN_FILE}`.")
        except configparser.Error as e:
            await ctx.send(f"❌ `{CAMPAIGN_FILE}` is not a readable campaign: {type(e).__name__}")
        except OSError as e:
            await ctx.send(f"❌ Campaign {action} failed: {type(e).__name__}: {e}")


def setup(bot):
    bot.add_cog(Tabletop(bot))
