"""BIND9 zone file management and reload control"""
import asyncio
import logging
import os
import re
import shlex
import tempfile
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Dict, Iterable, List, Optional

import dns.asyncresolver
import dns.exception
import dns.resolver
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.exceptions import SyncFailure
from app.core.redis import RedisClient, redis_client
from app.schemas.dns import DOMAIN_NAME_PATTERN

logger = logging.getLogger(__name__)

DOMAIN_NAME_RE = re.compile(DOMAIN_NAME_PATTERN)

NAMED_CONF_HEADER = """//
// Do any local configuration here
//

// Consider adding the 1918 zones here, if they are not used in your
// organization
//include "/etc/bind/zones.rfc1918";

"""


class ResolverControl:
    """Runs the resolver's reload and restart commands"""

    def __init__(self, reload_command: str = None, restart_command: str = None, timeout: float = None):
        self.reload_command = reload_command or settings.BIND_RELOAD_COMMAND
        self.restart_command = restart_command or settings.BIND_RESTART_COMMAND
        self.timeout = timeout or settings.BIND_COMMAND_TIMEOUT

    async def reload_zones(self) -> bool:
        return await self._run(self.reload_command)

    async def restart_service(self) -> bool:
        return await self._run(self.restart_command)

    async def _run(self, command: str) -> bool:
        try:
            process = await asyncio.create_subprocess_exec(
                *shlex.split(command),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Cannot run '{command}': {e}")
            return False

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.error(f"'{command}' timed out after {self.timeout}s")
            return False

        if process.returncode != 0:
            logger.error(f"'{command}' exited with {process.returncode}: {stderr.decode(errors='replace').strip()}")
            return False
        return True


def _read_existing(path: str) -> Optional[str]:
    if not os.path.exists(path):
        return None
    with open(path, encoding="utf-8") as f:
        return f.read()


def write_atomic(path: str, content: str):
    """Write via a temp file in the same directory and rename over the target"""
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".zone")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp:
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class ResolverSync:
    """Commits zone text to disk and makes BIND9 load it"""

    def __init__(
        self,
        zone_dir: str = None,
        named_conf_path: str = None,
        control: ResolverControl = None,
        redis: RedisClient = None,
        lock_timeout: int = None,
    ):
        self.zone_dir = zone_dir or settings.BIND_ZONE_DIR
        self.named_conf_path = named_conf_path or settings.BIND_NAMED_CONF_LOCAL
        self.control = control or ResolverControl()
        self.redis = redis or redis_client
        self.lock_timeout = lock_timeout or settings.ZONE_LOCK_TIMEOUT
        self._local_locks: Dict[str, asyncio.Lock] = {}

    def zone_file_path(self, domain_name: str) -> str:
        return os.path.join(self.zone_dir, f"{domain_name}.zone")

    def listable(self, domain_names: Iterable[str], written: Iterable[str] = ()) -> List[str]:
        """Domains named.conf may reference: valid names with a zone file on disk"""
        written = set(written)
        names = []
        for name in sorted(set(domain_names)):
            if not DOMAIN_NAME_RE.match(name):
                logger.error(f"Not listing zone {name!r}: invalid domain name")
            elif name in written or os.path.exists(self.zone_file_path(name)):
                names.append(name)
            else:
                logger.warning(f"Not listing zone {name}: no zone file written yet")
        return names

    def render_named_conf(self, domain_names: Iterable[str]) -> str:
        content = NAMED_CONF_HEADER
        for name in sorted(set(domain_names)):
            if not DOMAIN_NAME_RE.match(name):
                continue
            content += (
                f'zone "{name}" {{\n'
                f"    type master;\n"
                f'    file "{self.zone_file_path(name)}";\n'
                f"    allow-update {{ none; }};\n"
                f"}};\n\n"
            )
        return content

    @asynccontextmanager
    async def _locked(self, keys: Iterable[str]):
        """Hold every key's lock, taken in sorted order"""
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys)):
                # Redis when connected so API, scheduler and workers share the lock
                lock = self.redis.lock(f"zone-lock:{key}", timeout=self.lock_timeout)
                if lock is None:
                    lock = self._local_locks.setdefault(key, asyncio.Lock())
                await stack.enter_async_context(lock)
            yield

    async def commit(self, zones: Dict[str, str], domain_names: List[str]):
        """Write ``zones`` (domain name -> text), list every domain, reload.

        ``domain_names`` is the full set of served domains; a domain missing from
        ``zones`` keeps its previous zone file, and one that never had a file is
        left out of named.conf. The locks are held until the resolver has loaded
        the new data; when it cannot, every written file is put back as it was.
        """
        invalid = [name for name in zones if not DOMAIN_NAME_RE.match(name)]
        if invalid:
            logger.error(f"Not writing zones with invalid names: {invalid}")
            zones = {name: text for name, text in zones.items() if name not in invalid}

        previous: Dict[str, Optional[str]] = {}
        try:
            async with self._locked([*zones, "named.conf.local"]):
                try:
                    for domain_name, zone_text in zones.items():
                        path = self.zone_file_path(domain_name)
                        previous[path] = _read_existing(path)
                        write_atomic(path, zone_text)
                        logger.info(f"Wrote zone file {path}")

                    previous[self.named_conf_path] = _read_existing(self.named_conf_path)
                    listed = self.listable(domain_names, written=zones)
                    write_atomic(self.named_conf_path, self.render_named_conf(listed))
                except OSError as e:
                    self._restore(previous)
                    raise SyncFailure(f"writing zone data failed: {e}") from e

                try:
                    await self.reload()
                except SyncFailure:
                    self._restore(previous)
                    raise
        except RedisError as e:
            raise SyncFailure(f"zone lock unavailable: {e}") from e

    def _restore(self, previous: Dict[str, Optional[str]]):
        for path, content in previous.items():
            try:
                if content is None:
                    if os.path.exists(path):
                        os.unlink(path)
                else:
                    write_atomic(path, content)
            except OSError as e:
                logger.error(f"Could not restore {path}: {e}")
        if previous:
            logger.warning(f"Restored {len(previous)} file(s) to their previous content")

    async def reload(self):
        if await self.control.reload_zones():
            logger.info("Bind9 zones reloaded successfully")
            return
        logger.warning("Bind9 reload failed, restarting the service")
        if await self.control.restart_service():
            logger.info("Bind9 restarted successfully")
            return
        raise SyncFailure("Bind9 reload and restart both failed")


async def check_propagation(
    hostname: str,
    record_type: str = "A",
    nameserver: str = None,
    timeout: float = None,
) -> List[str]:
    """Answers the resolver currently serves for ``hostname``"""
    resolver = dns.asyncresolver.Resolver(configure=False)
    resolver.nameservers = [nameserver or settings.BIND_PROPAGATION_NAMESERVER]
    resolver.lifetime = timeout or settings.PROBE_TIMEOUT
    try:
        answers = await resolver.resolve(hostname, record_type)
    except (
        dns.resolver.NXDOMAIN,
        dns.resolver.NoAnswer,
        dns.resolver.NoNameservers,
        dns.exception.Timeout,
    ):
        return []
    return sorted(rdata.to_text() for rdata in answers)
