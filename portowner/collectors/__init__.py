from .dispatch import enumerate_sockets, pick_strategy, STRATEGIES
from .linux import read_fd_links
from .processes import snapshot_processes
from .users import UserDirectory
