# -*- coding: utf-8 -*-
"""Renders the secret through the operator's template."""

import logging
import os
import sys

import jinja2

from .exceptions import PersistenceError


def load_template(path):
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return jinja2.Template(fh.read(), keep_trailing_newline=True)
    except (OSError, jinja2.TemplateError) as e:
        raise PersistenceError("load template", path, e) from e


class OutputWriter:
    """Writes the rendered template to ``out_path`` (stdout when empty).

    The template sees the environment snapshot taken at startup overlaid with
    the secret's own variables, e.g. ``{{ Username }}`` / ``{{ Password }}`` or
    ``{{ Certificate }}`` / ``{{ PrivateKey }}``.
    """

    def __init__(self, template, out_path="", base_env=None, stream=None):
        self.template = template
        self.out_path = out_path
        self.base_env = dict(base_env or {})
        self.stream = stream

    @property
    def lease_path(self):
        return f"{self.out_path}.lease" if self.out_path else None

    def render(self, secret):
        try:
            return self.template.render(**secret.env_vars(self.base_env))
        except jinja2.TemplateError as e:
            raise PersistenceError("render template for", self.out_path or "stdout", e) from e

    def save(self, secret):
        """Render ``secret`` and, with an output path, persist it to the lease file."""
        rendered = self.render(secret)
        if not self.out_path:
            stream = self.stream or sys.stdout
            stream.write(rendered)
            stream.flush()
            return

        try:
            directory = os.path.dirname(self.out_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.out_path, "w", encoding="utf-8") as fh:
                fh.write(rendered)
        except OSError as e:
            raise PersistenceError("write secrets to", self.out_path, e) from e
        logging.getLogger(__name__).info(f"wrote secrets to {self.out_path}")

        secret.save(self.lease_path)
