#!/usr/bin/env python3
"""CLI for driving the auth service against local storage.

Provides commands to:
- Sign up, verify email, and (re)send verification codes
- Log in and out, show the current session
- Request and perform password resets
- Update the profile or delete the account of the logged-in user
- List all registered users

The session is persisted in the configured storage, so ``login`` in one
invocation is still active in the next.
"""

import argparse
import asyncio
import getpass
import logging
import re
import sys
from pathlib import Path

# Ensure gatehouse package is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from gatehouse.config import DEFAULT_CONFIG_PATH, build_service, load_config
from gatehouse.errors import AuthError
from gatehouse.service import AuthService, CodeDispatch

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
CODE_RE = re.compile(r"^\d{6}$")
MIN_PASSWORD_LENGTH = 6


class InputError(ValueError):
    """Command-line input rejected before reaching the service."""


def _check_email(email: str) -> str:
    if not EMAIL_RE.match(email.strip()):
        raise InputError("Please enter a valid email address")
    return email.strip()


def _check_code(code: str) -> str:
    if not CODE_RE.match(code.strip()):
        raise InputError("Code must be 6 digits")
    return code.strip()


def _password(args, prompt: str, confirm: bool = False) -> str:
    """Take the password from args or prompt for it."""
    password = args.password
    if not password:
        password = getpass.getpass(prompt)
        if confirm and getpass.getpass("Confirm password: ") != password:
            raise InputError("Passwords don't match")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InputError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


def _report_dispatch(dispatch: CodeDispatch, what: str) -> None:
    print(f"✓ {what} sent to {dispatch.email}")
    if not dispatch.delivered:
        print(f"  Delivery failed. The code is: {dispatch.fallback_code}")


async def signup(args, service: AuthService) -> int:
    """Register a new, unverified user."""
    email = _check_email(args.email)
    password = _password(args, f"Password for {args.username}: ", confirm=True)
    result = await service.signup(
        email,
        password,
        args.username,
        args.name,
        date_of_birth=args.date_of_birth,
        occupation=args.occupation,
        profile_picture=args.profile_picture,
    )
    print(f"✓ Account created: {result.user.id} ({result.user.username})")
    _report_dispatch(result.dispatch, "Verification code")
    return 0


async def verify_email(args, service: AuthService) -> int:
    email = _check_email(args.email)
    await service.verify_email(email, _check_code(args.code))
    print(f"✓ Email verified: {email}. You can now log in.")
    return 0


async def send_code(args, service: AuthService) -> int:
    dispatch = await service.send_verification_code(_check_email(args.email))
    _report_dispatch(dispatch, "Verification code")
    return 0


async def resend_code(args, service: AuthService) -> int:
    dispatch = await service.resend_verification_code()
    if dispatch is None:
        print("Not logged in; nothing to resend")
        return 1
    _report_dispatch(dispatch, "New verification code")
    return 0


async def login(args, service: AuthService) -> int:
    email = _check_email(args.email)
    user = await service.login(email, _password(args, f"Password for {email}: "))
    print(f"✓ Welcome back, {user.name}!")
    return 0


async def logout(args, service: AuthService) -> int:
    service.logout()
    print("✓ Logged out")
    return 0


async def whoami(args, service: AuthService) -> int:
    """Show the current session's user."""
    user = service.current_user
    if user is None:
        print("Not logged in")
        return 1

    print(f"{'ID':<16} {user.id}")
    print(f"{'Username':<16} {user.username}")
    print(f"{'Name':<16} {user.name}")
    print(f"{'Email':<16} {user.email}")
    print(f"{'Verified':<16} {'yes' if user.is_verified else 'no'}")
    print(f"{'Joined':<16} {user.date_joined:%Y-%m-%d}")
    print(f"{'Birth date':<16} {user.date_of_birth or '-'}")
    print(f"{'Occupation':<16} {user.occupation or '-'}")
    print(f"{'Picture':<16} {user.profile_picture}")
    return 0


async def request_reset(args, service: AuthService) -> int:
    dispatch = await service.request_password_reset(_check_email(args.email))
    _report_dispatch(dispatch, "Password reset code")
    return 0


async def reset_password(args, service: AuthService) -> int:
    email = _check_email(args.email)
    code = _check_code(args.code)
    password = _password(args, "New password: ", confirm=True)
    await service.reset_password(email, code, password)
    print("✓ Password reset. You can now log in with your new password.")
    return 0


async def update_profile(args, service: AuthService) -> int:
    changes = {
        field: value
        for field, value in (
            ("username", args.username),
            ("name", args.name),
            ("occupation", args.occupation),
            ("date_of_birth", args.date_of_birth),
            ("profile_picture", args.profile_picture),
        )
        if value is not None
    }
    if not changes:
        print("Error: Nothing to update", file=sys.stderr)
        return 1

    user = await service.update_profile(changes)
    print(f"✓ Profile updated: {user.username}")
    return 0


async def delete_account(args, service: AuthService) -> int:
    user = service.current_user
    if user is not None and not args.yes:
        answer = input(f"Delete account {user.username}? [y/N] ")
        if answer.strip().lower() != "y":
            print("Aborted")
            return 1

    await service.delete_account()
    print("✓ Account deleted")
    return 0


async def list_users(args, service: AuthService) -> int:
    """List all users with their verification status."""
    users = service.users.list_users()

    if not users:
        print("No users found")
        return 0

    print(f"{'ID':<38} {'Username':<20} {'Email':<30} {'Verified':<8}")
    print("-" * 98)

    for user in users:
        verified = "yes" if user.is_verified else "no"
        print(f"{user.id:<38} {user.username:<20} {user.email:<30} {verified:<8}")

    return 0


COMMANDS = {
    "signup": signup,
    "verify-email": verify_email,
    "send-code": send_code,
    "resend-code": resend_code,
    "login": login,
    "logout": logout,
    "whoami": whoami,
    "request-reset": request_reset,
    "reset-password": reset_password,
    "update-profile": update_profile,
    "delete-account": delete_account,
    "list-users": list_users,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gatehouse-manage",
        description="Manage local accounts, verification codes and the current session",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to config.json (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--log-level",
        "-l",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    signup_parser = subparsers.add_parser("signup", help="Create an account")
    signup_parser.add_argument("--email", required=True, help="Email address")
    signup_parser.add_argument("--username", required=True, help="Username")
    signup_parser.add_argument("--name", required=True, help="Display name")
    signup_parser.add_argument("--password", help="Password (prompted if omitted)")
    signup_parser.add_argument("--date-of-birth", help="Birth date, YYYY-MM-DD")
    signup_parser.add_argument("--occupation", help="Occupation")
    signup_parser.add_argument("--profile-picture", help="Profile picture URL")

    verify_parser = subparsers.add_parser("verify-email", help="Verify an email with a code")
    verify_parser.add_argument("--email", required=True, help="Email address")
    verify_parser.add_argument("--code", required=True, help="6-digit verification code")

    send_parser = subparsers.add_parser("send-code", help="Send a new verification code")
    send_parser.add_argument("--email", required=True, help="Email address")

    subparsers.add_parser("resend-code", help="Resend the code to the logged-in user")

    login_parser = subparsers.add_parser("login", help="Log in")
    login_parser.add_argument("--email", required=True, help="Email address")
    login_parser.add_argument("--password", help="Password (prompted if omitted)")

    subparsers.add_parser("logout", help="Log out")
    subparsers.add_parser("whoami", help="Show the logged-in user")

    request_parser = subparsers.add_parser("request-reset", help="Send a password reset code")
    request_parser.add_argument("--email", required=True, help="Email address")

    reset_parser = subparsers.add_parser("reset-password", help="Reset password with a code")
    reset_parser.add_argument("--email", required=True, help="Email address")
    reset_parser.add_argument("--code", required=True, help="6-digit reset code")
    reset_parser.add_argument("--password", help="New password (prompted if omitted)")

    update_parser = subparsers.add_parser("update-profile", help="Change profile fields")
    update_parser.add_argument("--username", help="New username")
    update_parser.add_argument("--name", help="New display name")
    update_parser.add_argument("--occupation", help="New occupation")
    update_parser.add_argument("--date-of-birth", help="New birth date, YYYY-MM-DD")
    update_parser.add_argument("--profile-picture", help="New profile picture URL")

    delete_parser = subparsers.add_parser("delete-account", help="Delete the logged-in account")
    delete_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")

    subparsers.add_parser("list-users", help="List all users")

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    service = build_service(load_config(args.config))
    service.restore()

    handler = COMMANDS[args.command]
    try:
        return asyncio.run(handler(args, service))
    except (AuthError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
