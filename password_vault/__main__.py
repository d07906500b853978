#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Secure Password Vault

This program allows you to:
1. Generate strong, random passwords
2. Store passwords securely (encrypted) in a local vault file
3. Search for passwords by service name
4. Mirror passwords into the operating system keychain
5. Import passwords exported from other managers as CSV

All data is stored locally in encrypted form at ~/.password_vault/.vault.enc
"""

from password_vault.cli import main

if __name__ == "__main__":
    main()
