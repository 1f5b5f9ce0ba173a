from murmur.runtime.render import describe_outcome, render_chat


def _parse_ints(args: str, count: int) -> list[int] | None:
    parts = args.split()
    if len(parts) < count:
        return None
    try:
        return [int(p) for p in parts[:count]]
    except ValueError:
        return None


class BuiltinCommands:
    def __init__(self, client):
        self.client = client
        self._handlers = {
            "quit": self.cmd_quit,
            "exit": self.cmd_quit,
            "new": self.cmd_new,
            "chats": self.cmd_chats,
            "switch": self.cmd_switch,
            "rename": self.cmd_rename,
            "system": self.cmd_system,
            "show": self.cmd_show,
            "edit": self.cmd_edit,
            "cancel": self.cmd_cancel,
            "delete": self.cmd_delete,
            "undo": self.cmd_undo,
            "regen": self.cmd_regen,
            "continue": self.cmd_continue,
            "version": self.cmd_version,
            "stop": self.cmd_stop,
            "model": self.cmd_model,
            "models": self.cmd_models,
            "health": self.cmd_health,
            "help": self.cmd_help,
        }

    def list_commands(self) -> list[str]:
        return sorted(self._handlers.keys())

    def has_command(self, name: str) -> bool:
        return name in self._handlers

    def handle(self, name: str, args: str) -> bool:
        handler = self._handlers.get(name)
        if not handler:
            return True
        return handler(args)

    def _report(self, outcome) -> None:
        text = describe_outcome(outcome)
        if text:
            print(text)

    def cmd_quit(self, args: str) -> bool:
        print("👋 Goodbye!")
        return False

    def cmd_new(self, args: str) -> bool:
        chat = self.client.new_chat(title=args.strip() or None)
        print(f"✅ Started {chat.title} ({chat.id})")
        return True

    def cmd_chats(self, args: str) -> bool:
        for position, summary in enumerate(self.client.list_chats()):
            marker = "*" if summary.active else " "
            print(f" {marker} {position}. {summary.title} - {summary.subtitle}  ({summary.id})")
        return True

    def cmd_switch(self, args: str) -> bool:
        target = args.strip()
        if not target:
            print("Usage: /switch <n|id>")
            return True
        summaries = self.client.list_chats()
        if target.isdigit() and int(target) < len(summaries):
            target = summaries[int(target)].id
        chat = self.client.switch_chat(target)
        if chat is None:
            print(f"❌ Chat {target} not found")
            return True
        print(render_chat(chat))
        return True

    def cmd_rename(self, args: str) -> bool:
        if not self.client.rename_chat(args):
            print("Usage: /rename <title>")
            return True
        print(f"✅ Renamed to {self.client.active.title}")
        return True

    def cmd_system(self, args: str) -> bool:
        if not args:
            print(f"System prompt: {self.client.active.system_prompt or '(none)'}")
            print("  /system <prompt> to change it, /system - to clear it")
            return True
        if args.strip() == "-":
            self.client.set_system_prompt("")
            print("✅ System prompt cleared")
            return True
        self.client.set_system_prompt(args)
        print("✅ System prompt updated")
        return True

    def cmd_show(self, args: str) -> bool:
        print(render_chat(self.client.active))
        return True

    def cmd_edit(self, args: str) -> bool:
        """``/edit <i>`` marks a message as being edited, ``/edit <i> <text>`` saves it."""
        parts = args.split(maxsplit=1)
        numbers = _parse_ints(args, 1)
        if numbers is None:
            print("Usage: /edit <index> [new text]")
            return True
        index = numbers[0]
        if len(parts) < 2:
            if not self.client.begin_edit(index):
                print(f"❌ Message {index} cannot be edited")
                return True
            print(f"✏️  Editing message {index}: {self.client.active.messages[index].content}")
            print(f"   /edit {index} <new text> to save, /cancel {index} to discard")
            return True
        if not self.client.save_edit(index, parts[1]):
            print(f"❌ Message {index} cannot be edited")
        return True

    def cmd_cancel(self, args: str) -> bool:
        numbers = _parse_ints(args, 1)
        if numbers is None:
            print("Usage: /cancel <index>")
            return True
        if self.client.cancel_edit(numbers[0]):
            print(f"Edit of message {numbers[0]} discarded")
        else:
            print(f"❌ Message {numbers[0]} is not a text message")
        return True

    def cmd_delete(self, args: str) -> bool:
        numbers = _parse_ints(args, 1)
        if numbers is None:
            print("Usage: /delete <index>")
            return True
        if self.client.delete_message(numbers[0]):
            print(f"🗑️  Deleted message {numbers[0]} (/undo {numbers[0]} to restore)")
        else:
            print(f"❌ No message at {numbers[0]}")
        return True

    def cmd_undo(self, args: str) -> bool:
        numbers = _parse_ints(args, 1)
        if numbers is None:
            print("Usage: /undo <index>")
            return True
        if self.client.undo_delete(numbers[0]):
            print(f"✅ Restored message {numbers[0]}")
        else:
            print(f"❌ Nothing to undo at {numbers[0]}")
        return True

    def cmd_regen(self, args: str) -> bool:
        numbers = _parse_ints(args, 1)
        if numbers is None:
            print("Usage: /regen <index>")
            return True
        self._report(self.client.regenerate(numbers[0]))
        return True

    def cmd_continue(self, args: str) -> bool:
        numbers = _parse_ints(args, 1)
        if numbers is None:
            print("Usage: /continue <index>")
            return True
        self._report(self.client.continue_message(numbers[0]))
        return True

    def cmd_version(self, args: str) -> bool:
        numbers = _parse_ints(args, 2)
        if numbers is None:
            print("Usage: /version <index> <n>  (n starts at 1)")
            return True
        index, version = numbers
        if not self.client.select_version(index, version - 1):
            print(f"❌ Message {index} has no version v{version}")
            return True
        print(render_chat(self.client.active))
        return True

    def cmd_stop(self, args: str) -> bool:
        if not self.client.stop():
            print("Nothing is streaming")
        return True

    def cmd_model(self, args: str) -> bool:
        if not args:
            print(f"Current model: {self.client.models.selected or '(none)'}")
            return True
        if self.client.select_model(args.strip()):
            print(f"✅ Switched to model: {self.client.models.selected}")
        else:
            print(f"❌ Model {args.strip()} is not offered by the server")
        return True

    def cmd_models(self, args: str) -> bool:
        if not self.client.models.available:
            print("No models available")
            return True
        for name in self.client.models.available:
            marker = "*" if name == self.client.models.selected else " "
            print(f" {marker} {name}")
        return True

    def cmd_health(self, args: str) -> bool:
        if not self.client.request_health():
            print("❌ Not connected to the server")
        return True

    def cmd_help(self, args: str) -> bool:
        print("\nCommands:")
        for name in self.list_commands():
            print(f"  /{name}")
        print("Anything else is sent as a message.\n")
        return True
