import asyncio

from tests.test_utils import linked_attr, make_table, make_token, run, settle


def test_hp_loss_absorbed_by_thp():
    sandbox, _, _ = make_table()
    token = make_token(sandbox, hp=20, thp=5)

    run(lambda: sandbox.update(token, bar1_value=17))

    assert token.get("bar1_value") == 20
    assert token.get("bar3_value") == 2
    assert linked_attr(sandbox, token, 1).get("current") == 20
    assert linked_attr(sandbox, token, 3).get("current") == 2


def test_hp_loss_partially_absorbed():
    sandbox, _, _ = make_table()
    token = make_token(sandbox, hp=20, thp=5)

    run(lambda: sandbox.update(token, bar1_value=12))

    assert token.get("bar1_value") == 17
    assert token.get("bar3_value") == 0
    assert linked_attr(sandbox, token, 3).get("current") == 0


def test_hp_loss_without_thp_is_left_alone():
    sandbox, _, _ = make_table()
    token = make_token(sandbox, hp=20, thp=0)

    run(lambda: sandbox.update(token, bar1_value=12))

    assert token.get("bar1_value") == 12
    assert token.get("bar3_value") == 0


def test_healing_does_not_touch_thp():
    sandbox, _, _ = make_table()
    token = make_token(sandbox, hp=20, thp=5)

    run(lambda: sandbox.update(token, bar1_value=25))

    assert token.get("bar1_value") == 25
    assert token.get("bar3_value") == 5


def test_string_bar_values_from_players():
    sandbox, _, _ = make_table()
    token = make_token(sandbox, hp="20", thp="5", linked=False)

    run(lambda: sandbox.update(token, bar1_value="18"))

    assert token.get("bar1_value") == 20
    assert token.get("bar3_value") == 3


def test_lower_thp_does_not_replace_higher():
    sandbox, _, _ = make_table()
    token = make_token(sandbox, hp=20, thp=5)

    run(lambda: sandbox.update(token, bar3_value=3))

    assert token.get("bar3_value") == 5
    assert linked_attr(sandbox, token, 3).get("current") == 5


def test_higher_thp_is_kept_without_a_write():
    sandbox, script, _ = make_table()
    token = make_token(sandbox, hp=20, thp=5)
    writes = []
    script.set_bar = lambda *args: writes.append(args)

    run(lambda: sandbox.update(token, bar3_value=8))

    assert token.get("bar3_value") == 8
    assert writes == []


def test_thp_cleared_or_first_granted_is_accepted():
    sandbox, _, _ = make_table()
    cleared = make_token(sandbox, hp=20, thp=5, name="A")
    granted = make_token(sandbox, hp=20, thp=0, name="B")

    def scenario():
        sandbox.update(cleared, bar3_value=0)
        sandbox.update(granted, bar3_value=4)

    run(scenario)

    assert cleared.get("bar3_value") == 0
    assert granted.get("bar3_value") == 4


def test_non_numeric_hp_warns_and_leaves_bars():
    sandbox, _, logs = make_table()
    token = make_token(sandbox, hp="lots", thp=5, linked=False)

    run(lambda: sandbox.update(token, bar1_value="fewer"))

    assert token.get("bar1_value") == "fewer"
    assert token.get("bar3_value") == 5
    assert any(line.startswith("[WARN] Non-numeric hit points") for line in logs)


def test_configured_bars_are_used():
    sandbox, _, _ = make_table(hp_bar=2, thp_bar=1)
    token = sandbox.create_obj("graphic", bar2_value=30, bar1_value=4)

    run(lambda: sandbox.update(token, bar2_value=28))

    assert token.get("bar2_value") == 30
    assert token.get("bar1_value") == 2


def test_set_bar_rejects_bad_bar_or_value():
    sandbox, script, logs = make_table()
    token = make_token(sandbox, linked=False)

    def scenario():
        script.set_bar(token, 4, 10)
        script.set_bar(token, "1", 10)
        script.set_bar(token, 1, "10")

    run(scenario)

    assert token.get("bar1_value") == 20
    assert logs.count("[WARN] Could not adjust bar; invalid bar or value.") == 3


def test_set_bar_is_deferred():
    sandbox, script, _ = make_table(latency=50)
    token = make_token(sandbox, linked=False)

    async def scenario():
        script.set_bar(token, 1, 11)
        await settle(0.01)
        early = token.get("bar1_value")
        await settle(0.1)
        return early, token.get("bar1_value")

    assert asyncio.run(scenario()) == (20, 11)


def test_set_bar_with_missing_attribute_still_writes_token():
    sandbox, script, logs = make_table()
    token = make_token(sandbox, hp=20, thp=5)
    sandbox.remove_obj(linked_attr(sandbox, token, 1))

    run(lambda: script.set_bar(token, 1, 9))

    assert token.get("bar1_value") == 9
    assert f'[WARN] Could not find associated attribute for bar "1" on token "{token.id}".' in logs


def test_debug_lines_follow_config():
    sandbox, _, logs = make_table(debug=True)
    token = make_token(sandbox, linked=False)

    run(lambda: sandbox.update(token, bar1_value=19))

    assert f"[DEBUG] on_change_token ({token.id})" in logs
    assert "[NOTICE] D&D 4e automation ready (HP bar 1, THP bar 3)." in logs


def test_chat_dispatches_registered_command():
    sandbox, script, _ = make_table()
    calls = []
    script.register_command("Ping", lambda flags, content, msg: calls.append((flags, content, msg.who)))

    sandbox.chat("!ping --loud --to=all hello there", who="Ana")

    assert calls == [({"loud": True, "to": "all"}, "hello there", "Ana")]


def test_chat_ignores_non_api_and_warns_on_unknown():
    sandbox, _, logs = make_table()

    sandbox.chat("just talking", who="Ana")
    assert not any(line.startswith("[WARN]") for line in logs)

    sandbox.chat("!fireball --at=goblin", who="Ana")
    assert '[WARN] Attempted to call invalid command "fireball".' in logs


def test_damage_command_uses_thp_first():
    sandbox, _, _ = make_table()
    token = make_token(sandbox, hp=20, thp=5, name="Orc")
    said = []
    sandbox.add_chat_listener(lambda who, text: said.append(text))

    run(lambda: sandbox.chat("!damage --token=orc 8", who="DM"))

    assert token.get("bar1_value") == 17
    assert token.get("bar3_value") == 0
    assert said == ["Orc takes 8 damage: HP 17, THP 0."]


def test_thp_command_keeps_the_higher_grant():
    sandbox, _, _ = make_table()
    token = make_token(sandbox, hp=20, thp=5, name="Orc")
    said = []
    sandbox.add_chat_listener(lambda who, text: said.append(text))

    def scenario():
        sandbox.chat(f"!thp --token={token.id} 3")
        sandbox.chat(f"!thp --token={token.id} 9")

    run(scenario)

    assert token.get("bar3_value") == 9
    assert said == ["Orc has 5 temporary hit points.", "Orc has 9 temporary hit points."]


def test_commands_warn_on_bad_target_or_amount():
    sandbox, _, logs = make_table()
    make_token(sandbox, name="Orc")

    sandbox.chat("!damage --token=troll 4")
    sandbox.chat("!thp --token=orc lots")

    assert '[WARN] damage: no token matches "troll".' in logs
    assert '[WARN] thp: "lots" is not a valid amount.' in logs


def test_commands_in_the_same_tick_stack():
    sandbox, _, _ = make_table(latency=20)
    token = make_token(sandbox, hp=20, thp=0, name="Orc")

    def scenario():
        sandbox.chat("!damage --token=orc 3")
        sandbox.chat("!damage --token=orc 4")

    async def main():
        scenario()
        await settle(0.1)

    asyncio.run(main())

    assert token.get("bar1_value") == 13


def test_damage_after_thp_grant_in_the_same_tick():
    sandbox, _, _ = make_table(latency=20)
    token = make_token(sandbox, hp=20, thp=0, name="Orc")

    async def main():
        sandbox.chat("!thp --token=orc 5")
        sandbox.chat("!damage --token=orc 7")
        await settle(0.1)

    asyncio.run(main())

    assert token.get("bar3_value") == 0
    assert token.get("bar1_value") == 18
