# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from .cli import run

if __name__ == "__main__":
    run()
