"""Crontab registration so the agent re-runs itself periodically."""

import logging
import shlex
from pathlib import Path
from typing import List, Optional

from crontab import CronTab

from ..config import ScheduleConfig
from ..utils.messaging import Reporter

logger = logging.getLogger(__name__)


class SchedulerRegistrar:
    """
    Keeps exactly one crontab entry for this agent.

    Entries are matched both by their comment tag and by the invocation path,
    so an entry added by hand or by an older install is adopted rather than
    duplicated. When the command changes (e.g. the agent moved) the old entry
    is replaced.
    """

    def __init__(
        self,
        invocation_path: str,
        log_file: Path,
        config: Optional[ScheduleConfig] = None,
        deploy_user: Optional[str] = None,
        cron: Optional[CronTab] = None,
        reporter: Optional[Reporter] = None,
    ):
        self.invocation_path = invocation_path
        self.log_file = log_file
        self.config = config or ScheduleConfig()
        self.deploy_user = deploy_user
        self._cron = cron
        self.reporter = reporter or Reporter()

    @property
    def cron(self) -> CronTab:
        if self._cron is None:
            self._cron = CronTab(user=True)
        return self._cron

    def build_command(self) -> str:
        command = f"{self.invocation_path} >> {shlex.quote(str(self.log_file))} 2>&1"
        if self.deploy_user:
            # Scheduled runs have no SUDO_USER, so pass the owner along explicitly
            command = f"AUTODEPLOY_DEPLOY_USER={shlex.quote(self.deploy_user)} {command}"
        return command

    def find_entries(self) -> List:
        """Jobs tagged with our comment or invoking our path, without repeats."""
        jobs = list(self.cron.find_comment(self.config.comment))
        for job in self.cron.find_command(self.invocation_path):
            if job not in jobs:
                jobs.append(job)
        return jobs

    def is_registered(self) -> bool:
        return bool(self.find_entries())

    def _entry_current(self, job, command: str) -> bool:
        return (
            job.command == command
            and job.comment == self.config.comment
            and str(job.slices) == self.config.expression
        )

    def register(self) -> bool:
        """
        Ensure a single up-to-date entry exists.

        Returns:
            True if the crontab was written, False if it was already current
        """
        command = self.build_command()
        existing = self.find_entries()

        if len(existing) == 1 and self._entry_current(existing[0], command):
            self.reporter.info("Crontab task already configured.")
            return False

        if existing:
            self.reporter.info("Updating the existing crontab task.")
            for job in existing:
                self.cron.remove(job)
        else:
            self.reporter.info(
                "Adding the agent to crontab to run every 5 minutes."
                if self.config.expression == "*/5 * * * *"
                else f"Adding the agent to crontab ({self.config.expression})."
            )

        job = self.cron.new(command=command, comment=self.config.comment)
        job.setall(self.config.expression)
        self.cron.write()
        return True
