"""Shared pytest fixtures for the appsetup test suite.

Provides reusable fixtures for:
- Files as ``django-admin startproject`` and ``create-vite`` write them
- A ``Config`` rooted in a temporary directory
- A fake command runner that records commands and mimics the side effects
  of the external tools the setup run calls
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from appsetup.config import Config


# ---------------------------------------------------------------------------
# Generated file bodies
# ---------------------------------------------------------------------------

DJANGO_SETTINGS = '''"""
Django settings for backend project.

Generated by 'django-admin startproject' using Django 5.1.

For more information on this file, see
https://docs.djangoproject.com/en/5.1/topics/settings/
"""

from pathlib import Path

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = 'django-insecure-test-key'

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = True

ALLOWED_HOSTS = []


# Application definition

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'backend.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'backend.wsgi.application'


# Database
# https://docs.djangoproject.com/en/5.1/ref/settings/#databases

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}


# Password validation
# https://docs.djangoproject.com/en/5.1/ref/settings/#auth-password-validators

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
]


# Internationalization
# https://docs.djangoproject.com/en/5.1/topics/i18n/

LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'UTC'

USE_I18N = True

USE_TZ = True


# Static files (CSS, JavaScript, Images)
# https://docs.djangoproject.com/en/5.1/howto/static-files/

STATIC_URL = 'static/'

# Default primary key field type
# https://docs.djangoproject.com/en/5.1/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'
'''

DJANGO_URLS = '''"""
URL configuration for backend project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.1/topics/http/urls/
Examples:
Function views
    1. Add an import:  from my_app import views
    2. Add a URL to urlpatterns:  path('', views.home, name='home')
Including another URLconf
    1. Import the include() function: from django.urls import include, path
    2. Add a URL to urlpatterns:  path('blog/', include('blog.urls'))
"""
from django.contrib import admin
from django.urls import path

urlpatterns = [
    path('admin/', admin.site.urls),
]
'''

VITE_CONFIG = """import { defineConfig } from 'vite'
import react from '@vitejs/plugin-react'

// https://vite.dev/config/
export default defineConfig({
  plugins: [react()],
})
"""


# ---------------------------------------------------------------------------
# Paths & files
# ---------------------------------------------------------------------------

@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    """A pristine ``settings.py`` as written by ``startproject``."""
    path = tmp_path / "settings.py"
    path.write_text(DJANGO_SETTINGS, encoding="utf-8")
    return path


@pytest.fixture
def urls_file(tmp_path: Path) -> Path:
    """A pristine project ``urls.py`` as written by ``startproject``."""
    path = tmp_path / "urls.py"
    path.write_text(DJANGO_URLS, encoding="utf-8")
    return path


@pytest.fixture
def vite_config_file(tmp_path: Path) -> Path:
    """A pristine ``vite.config.js`` from the react template."""
    path = tmp_path / "vite.config.js"
    path.write_text(VITE_CONFIG, encoding="utf-8")
    return path


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """A Config whose project lands in a temporary directory."""
    return Config(output_dir=tmp_path / "workspace")


# ---------------------------------------------------------------------------
# Fake external tools
# ---------------------------------------------------------------------------


class FakeRunner:
    """Stand-in for :func:`appsetup.utils.run_command`.

    Records every call and reproduces the files the real tools would leave
    behind, so the steps after them find what they expect.  ``fail_on`` makes
    the first command containing that token exit with status 1.
    """

    def __init__(self, fail_on: str | None = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self.fail_on = fail_on
        self.databases: set[str] = set()
        self.conda_envs: set[str] = {"base"}

    @property
    def commands(self) -> list[list[str]]:
        return [call["cmd"] for call in self.calls]

    async def __call__(
        self,
        cmd: list[str],
        cwd: str | Path | None = None,
        timeout: int = 600,
        env: dict[str, str] | None = None,
    ) -> tuple[int, str, str]:
        self.calls.append({"cmd": list(cmd), "cwd": Path(cwd) if cwd else None, "env": env})
        if self.fail_on and self.fail_on in cmd:
            return (1, "", f"{self.fail_on} failed")

        cwd_path = Path(cwd) if cwd else Path.cwd()
        if cmd[0] == "psql" and "-tAc" in cmd:
            name = cmd[-1].split("'")[1]
            return (0, "1" if name in self.databases else "", "")
        if cmd[0] == "psql" and "-c" in cmd:
            self.databases.add(cmd[-1].split('"')[1])
        elif cmd[:3] == ["conda", "env", "list"]:
            listing = "# conda environments:\n#\n" + "\n".join(
                f"{name}    /opt/conda/envs/{name}" for name in sorted(self.conda_envs)
            )
            return (0, listing, "")
        elif cmd[:3] == ["conda", "env", "create"]:
            self.conda_envs.add("django-react-app")
        elif "startproject" in cmd:
            project = cmd[cmd.index("startproject") + 1]
            (cwd_path / "manage.py").write_text("#!/usr/bin/env python\n", encoding="utf-8")
            package = cwd_path / project
            package.mkdir(parents=True, exist_ok=True)
            (package / "__init__.py").write_text("", encoding="utf-8")
            (package / "settings.py").write_text(DJANGO_SETTINGS, encoding="utf-8")
            (package / "urls.py").write_text(DJANGO_URLS, encoding="utf-8")
        elif "startapp" in cmd:
            app = cwd_path / cmd[cmd.index("startapp") + 1]
            app.mkdir(parents=True)
            for name in ("__init__.py", "admin.py", "apps.py", "models.py", "tests.py", "views.py"):
                (app / name).write_text("", encoding="utf-8")
        elif cmd[:2] == ["npm", "create"]:
            frontend = cwd_path / cmd[3]
            (frontend / "src").mkdir(parents=True, exist_ok=True)
            (frontend / "package.json").write_text(json.dumps({"name": "frontend"}), encoding="utf-8")
            (frontend / "vite.config.js").write_text(VITE_CONFIG, encoding="utf-8")
            (frontend / "index.html").write_text("<!doctype html>\n", encoding="utf-8")
            (frontend / "src" / "main.jsx").write_text("import App from './App.jsx'\n", encoding="utf-8")
            (frontend / "src" / "App.jsx").write_text("export default function App() {}\n", encoding="utf-8")
        return (0, "", "")


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def all_tools_installed(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pretend every prerequisite executable is on PATH."""
    monkeypatch.setattr("shutil.which", lambda tool: f"/usr/bin/{tool}")
