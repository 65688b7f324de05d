"""python -m plumb のエントリポイント。"""

from plumb.cli import main

if __name__ == "__main__":
    main()
