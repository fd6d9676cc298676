#! /usr/bin/python3

from os import environ
from sys import argv, exit

from radixfleet.teardown import main

if __name__ == '__main__':
    exit(main(*argv, **environ))
