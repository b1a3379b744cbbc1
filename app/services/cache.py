from collections import OrderedDict


class ResponseCache:
    """
    Answers keyed by model + the first prefix_len characters of the prompt.

    Two prompts that share their prefix map to the same slot, so the second
    one gets the first one's answer. Oldest entries are evicted once
    max_entries is reached (0 = unbounded).
    """

    def __init__(self, prefix_len: int = 50, max_entries: int = 1000):
        self.prefix_len = prefix_len
        self.max_entries = max_entries
        self._items: OrderedDict[str, str] = OrderedDict()

    def key(self, model: str, prompt: str) -> str:
        return f"{model}:{prompt[:self.prefix_len]}"

    def get(self, model: str, prompt: str) -> str | None:
        return self._items.get(self.key(model, prompt))

    def put(self, model: str, prompt: str, text: str) -> None:
        k = self.key(model, prompt)
        self._items[k] = text
        self._items.move_to_end(k)
        if self.max_entries > 0:
            while len(self._items) > self.max_entries:
                self._items.popitem(last=False)

    def __len__(self) -> int:
        return len(self._items)
