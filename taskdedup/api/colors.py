from enum import Enum

class TaskColor(Enum):
    YELLOW = "[yellow]"
    GREEN = "[green]"
    RED = "[red]"
    RESET = "[/]"

    def __str__(self):
        return self.value


PRIORITY_COLORS = {
    "High": TaskColor.RED,
    "Medium": TaskColor.YELLOW,
    "Low": TaskColor.GREEN,
}
