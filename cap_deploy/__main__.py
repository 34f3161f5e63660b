"""Run the cap-deploy command line tool with `python -m cap_deploy`."""

from cap_deploy.tool.cap_deploy import main

if __name__ == "__main__":
    main()
